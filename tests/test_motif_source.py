import json

import pytest

from builders import make_triad_motif
from pyactivesite.data_containers import Distance_constraint, Motif, Residue
from pyactivesite.motif_source import (Paged_motif_source,
                                       ec_number_matches_filter,
                                       load_motif_file)


@pytest.fixture
def motif_source() -> Paged_motif_source:
    motifs = [
        make_triad_motif('trypsin', ec_number='3.4.21.4'),
        make_triad_motif('chymotrypsin', ec_number='3.4.21.1'),
        make_triad_motif('papain', ec_number='3.4.22.2'),
        make_triad_motif('lipase', ec_number='3.1.1.3'),
        make_triad_motif('esterase', ec_number='3.11.1.1'),
        make_triad_motif('unknown_function', ec_number='unknown'),
    ]
    return Paged_motif_source(motifs, page_size=2)


def test_pages_cover_all_the_motifs_sorted_by_ID(motif_source):
    pages = [motif_source.get_page(None, page_number) for page_number in range(4)]

    assert [[motif.motif_ID for motif in page.motifs] for page in pages] == [
        ['chymotrypsin', 'esterase'], ['lipase', 'papain'], ['trypsin', 'unknown_function'], []
    ]
    assert [page.has_content for page in pages] == [True, True, True, False]
    assert all(page.total_n_motifs == 6 for page in pages)

@pytest.mark.parametrize('ec_number_filter, motif_IDs', [
    ('3.4.21', ['chymotrypsin', 'trypsin']),
    ('3.4', ['chymotrypsin', 'papain']), # First page only
    ('3.1.1.3', ['lipase']),
    ('3.1', ['lipase']), # Not the 3.11 subclass
    ('3.1.', ['lipase']),
    ('3.11', ['esterase']),
    ('6.1', []),
])
def test_pages_restricted_to_an_EC_number(motif_source, ec_number_filter, motif_IDs):
    page = motif_source.get_page(ec_number_filter, 0)
    assert [motif.motif_ID for motif in page.motifs] == motif_IDs

def test_ec_number_matches_filter():
    assert ec_number_matches_filter('3.4.21.4', '')
    assert ec_number_matches_filter('3.4.21.4', None)
    assert ec_number_matches_filter('3.4.21.4', '3.4.21.4')
    assert not ec_number_matches_filter('3.4.21.4', '3.5')
    assert not ec_number_matches_filter('3.11.1.1', '3.1')
    assert not ec_number_matches_filter('3.4.211.1', '3.4.21')

def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        Paged_motif_source([], page_size=0)


def test_motif_files_are_loaded_from_a_folder(tmp_path):
    motif = make_triad_motif()
    (tmp_path / 'serine_proteases').mkdir()
    (tmp_path / 'serine_proteases' / 'mot1.json').write_text(json.dumps(motif.to_dict()))

    motif_source = Paged_motif_source.from_folder(tmp_path)

    assert motif_source.get_page(None, 0).motifs == [motif]

def test_motif_file_with_the_minimal_fields(tmp_path):
    motif_file_path = tmp_path / 'cys.json'
    motif_file_path.write_text(json.dumps({
        'motif_ID': 'cys', 'structure_ID': '1CYS', 'active_site_residues': [{'resname': 'cys', 'residue_ID': 25}]
    }))

    motif = load_motif_file(motif_file_path)

    assert motif.ec_number == 'unknown'
    assert motif.active_site_residues == [Residue('CYS', '25')]
    assert motif.constraints == []

@pytest.mark.parametrize('content', [
    'not json',
    '{"motif_ID": "mot1"}',
    '{"motif_ID": "mot1", "structure_ID": "1MOT", "active_site_residues": [{"resname": "HOH", "residue_ID": "1"}]}',
])
def test_invalid_motif_files(tmp_path, content):
    motif_file_path = tmp_path / 'invalid.json'
    motif_file_path.write_text(content)

    with pytest.raises(ValueError, match='invalid.json'):
        load_motif_file(motif_file_path)


def test_motif_constraints_must_stay_within_the_active_site():
    with pytest.raises(ValueError, match='not part of its active site'):
        Motif('mot1', '3.4.21.4', '1MOT', [Residue('HIS', '57'), Residue('ASP', '102')], [Distance_constraint('57', '195', 'NE2', 'OG', 6.0)])

def test_motif_residue_IDs_must_be_unique():
    with pytest.raises(ValueError, match='duplicated'):
        Motif('mot1', '3.4.21.4', '1MOT', [Residue('HIS', '57'), Residue('ASP', '57')])

def test_motif_constraints_cannot_pair_a_residue_with_itself():
    with pytest.raises(ValueError, match='itself'):
        Motif('mot1', '3.4.21.4', '1MOT', [Residue('HIS', '57')], [Distance_constraint('57', '57', 'NE2', 'CA', 4.0)])

def test_motif_fingerprint_changes_with_its_definition():
    motif = make_triad_motif()
    changed_motif = make_triad_motif()
    changed_motif.constraints[0] = Distance_constraint('57', '102', 'NE2', 'OD1', 5.5)

    assert motif.fingerprint() == make_triad_motif().fingerprint()
    assert motif.fingerprint() != changed_motif.fingerprint()
