import pytest

from builders import (ASP_KEY_COORD, HIS_KEY_COORD, SER_KEY_COORD,
                      make_structure)
from pyactivesite.candidate_search import (
    distance_is_within_tolerance, get_candidate_groups_of_motif_residues,
    run_distance_query)
from pyactivesite.data_containers import Motif, Residue


@pytest.mark.parametrize('measured_distance, expected_distance, precision_factor, within_tolerance', [
    (4.8, 5.0, 1.0, True),
    (1.5, 5.0, 1.0, True),
    (5.0, 5.0, 1.0, False), # Must be strictly below the expected distance
    (5.3, 5.0, 1.0, False),
    (0.9, 5.0, 1.0, False), # More than 4 Å below
    (5.5, 5.0, 1.2, True),
    (4.8, 5.0, 0.5, False),
])
def test_distance_is_within_tolerance(measured_distance, expected_distance, precision_factor, within_tolerance):
    assert distance_is_within_tolerance(measured_distance, expected_distance, precision_factor) == within_tolerance


def test_run_distance_query_returns_qualifying_atoms_of_the_first_residue_type(triad_target_structure):
    results = run_distance_query(triad_target_structure, 'NE2', 'OD1', 'HIS', 'ASP', 5.0, 1.0)

    assert [(group.resname, group.residue_number, atom.name) for group, atom in results] == [('HIS', 40, 'NE2')]

def test_run_distance_query_never_pairs_a_residue_with_itself():
    structure = make_structure('1ONE', [('HIS', 10, HIS_KEY_COORD)])

    # Huge tolerance: only the NE2 atom of the residue itself could qualify
    assert run_distance_query(structure, 'NE2', 'NE2', 'HIS', 'HIS', 1.0, 10.0) == []

def test_run_distance_query_pairs_two_residues_of_the_same_type():
    structure = make_structure('1TWO', [('HIS', 10, HIS_KEY_COORD), ('HIS', 20, ASP_KEY_COORD)])

    results = run_distance_query(structure, 'NE2', 'NE2', 'HIS', 'HIS', 5.0, 1.0)

    assert [group.residue_number for group, atom in results] == [10, 20]


def test_candidate_groups_of_the_triad(triad_motif, triad_target_structure):
    candidate_map = get_candidate_groups_of_motif_residues(triad_target_structure, triad_motif, 1.0)

    assert list(candidate_map.keys()) == triad_motif.active_site_residues
    assert {residue.resname: [group.residue_number for group in groups] for residue, groups in candidate_map.items()} == {
        'HIS': [40], # His 300 is too far from any Asp or Ser
        'ASP': [85],
        'SER': [170],
    }

def test_candidate_groups_with_a_precision_factor_too_low(triad_motif, triad_target_structure):
    candidate_map = get_candidate_groups_of_motif_residues(triad_target_structure, triad_motif, 0.5)

    assert all(groups == [] for groups in candidate_map.values())

def test_candidate_groups_are_ordered_by_position_in_the_structure(triad_motif):
    structure = make_structure('1ORD', [
        ('SER', 5, SER_KEY_COORD),
        ('HIS', 40, HIS_KEY_COORD),
        ('ASP', 85, ASP_KEY_COORD),
        ('SER', 170, (1.0875, 5.6971, 0.5)),
    ])

    candidate_map = get_candidate_groups_of_motif_residues(structure, triad_motif, 1.0)

    assert [group.residue_number for group in candidate_map[Residue('SER', '195')]] == [5, 170]

def test_residue_without_constraints_accepts_every_amino_acid_residue():
    motif = Motif(motif_ID='cys', ec_number='3.4.22.2', structure_ID='1CYS', active_site_residues=[Residue('CYS', '25')])
    structure = make_structure('1TGT', [('CYS', 3, (0.0, 0.0, 0.0)), ('SER', 4, (5.0, 0.0, 0.0)), ('CYS', 30, (20.0, 0.0, 0.0))])

    candidate_map = get_candidate_groups_of_motif_residues(structure, motif, 1.0)

    assert [group.residue_number for group in candidate_map[Residue('CYS', '25')]] == [3, 4, 30]
