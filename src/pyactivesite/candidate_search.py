from typing import Dict, List, Set, Tuple

from pyactivesite.constants import DISTANCE_ERROR_MARGIN
from pyactivesite.data_containers import (Atom, Distance_constraint, Motif,
                                          Residue, Structural_group, Structure)
from pyactivesite.utils import pairwise_euclidean_distance


def distance_is_within_tolerance(measured_distance: float, expected_distance: float, precision_factor: float) -> bool:
    """
    The measured distance must be strictly below the scaled expected distance, but not by more than the scaled error margin.
    Ex: with an expected distance of 5 Å and a precision factor of 1, measured distances in ]1, 5[ are accepted.
    """
    scaled_distance = expected_distance * precision_factor
    return measured_distance < scaled_distance and abs(measured_distance - scaled_distance) < DISTANCE_ERROR_MARGIN * precision_factor

def get_atoms_of_type_in_groups(groups: List[Structural_group], atom_name: str) -> List[Tuple[Structural_group, Atom]]:
    return [(group, atom) for group in groups for atom in group.get_atoms_of_type(atom_name)]

def run_distance_query(
        structure: Structure, atom_1_name: str, atom_2_name: str, residue_1_name: str, residue_2_name: str, distance: float, precision_factor: float
    ) -> List[Tuple[Structural_group, Atom]]:
    """
    Returns the atoms named atom_1_name, in residues of type residue_1_name, that are within tolerance of the given distance from
    at least one atom named atom_2_name in a residue of type residue_2_name. Each qualifying atom is returned once, together with the group it belongs to.
    """
    atom_1_list = get_atoms_of_type_in_groups(structure.get_groups_of_type(residue_1_name), atom_1_name)
    atom_2_list = get_atoms_of_type_in_groups(structure.get_groups_of_type(residue_2_name), atom_2_name)

    results: List[Tuple[Structural_group, Atom]] = []
    for group_1, atom_1 in atom_1_list:
        for group_2, atom_2 in atom_2_list:
            if group_1 is group_2: # A residue cannot be paired with itself
                continue

            measured_distance = float(pairwise_euclidean_distance(atom_1.coord, atom_2.coord))
            if distance_is_within_tolerance(measured_distance, distance, precision_factor):
                results.append((group_1, atom_1))
                break

    return results

def run_constraint_query_for_residue(
        structure: Structure, motif: Motif, residue: Residue, constraint: Distance_constraint, precision_factor: float
    ) -> List[Tuple[Structural_group, Atom]]:
    """The constraint is queried from the point of view of the given residue, i.e mirrored when the residue is the second residue of the constraint."""
    residue_1 = motif.get_residue(constraint.residue_1_ID)
    residue_2 = motif.get_residue(constraint.residue_2_ID)

    if residue.residue_ID == constraint.residue_1_ID:
        return run_distance_query(structure, constraint.atom_1_name, constraint.atom_2_name, residue_1.resname, residue_2.resname, constraint.distance, precision_factor)

    return run_distance_query(structure, constraint.atom_2_name, constraint.atom_1_name, residue_2.resname, residue_1.resname, constraint.distance, precision_factor)

def get_candidate_groups_of_motif_residues(structure: Structure, motif: Motif, precision_factor: float) -> Dict[Residue, List[Structural_group]]:
    """
    For each residue of the motif's active site, returns the residue instances of the structure that own at least one atom satisfying
    one of the distance constraints the residue takes part in. Residues that are not part of any constraint can be matched by
    any amino acid residue instance, their type being checked by the sequence comparison. Candidates are ordered by their position in the structure and a residue with no candidate
    is mapped to an empty list.
    """
    candidate_map: Dict[Residue, List[Structural_group]] = {}
    for residue in motif.active_site_residues:
        residue_constraints = motif.get_constraints_of_residue(residue)
        if not residue_constraints:
            candidate_map[residue] = structure.get_amino_acid_groups()
            continue

        qualifying_groups: Set[Structural_group] = set()
        for constraint in residue_constraints:
            qualifying_groups.update(
                group for group, atom in run_constraint_query_for_residue(structure, motif, residue, constraint, precision_factor)
            )

        candidate_map[residue] = [group for group in structure.groups if group in qualifying_groups]

    return candidate_map
