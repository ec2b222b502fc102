import json

import pandas as pd
import pytest
from click.testing import CliRunner

from builders import (make_triad_motif, make_triad_motif_structure,
                      make_triad_target_structure, write_PDB_file)
from pyactivesite.pyactivesite import command_line_interface


@pytest.fixture
def database_path(tmp_path):
    database_path = tmp_path / 'PDB'
    database_path.mkdir()
    write_PDB_file(make_triad_motif_structure(), database_path / '1MOT.pdb', ec_number='3.4.21.4')
    write_PDB_file(make_triad_target_structure(), database_path / '1TGT.pdb', ec_number='3.4.21.4')
    return database_path

@pytest.fixture
def motif_folder_path(tmp_path):
    motif_folder_path = tmp_path / 'motifs'
    motif_folder_path.mkdir()
    (motif_folder_path / 'mot1.json').write_text(json.dumps(make_triad_motif().to_dict()))
    return motif_folder_path


def test_align_active_sites_command(tmp_path, database_path, motif_folder_path):
    results_output_path = tmp_path / 'results.csv'
    match_store_path = tmp_path / 'match_records.sqlite'

    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites', '1TGT', '9XYZ',
        '--database_path', str(database_path),
        '--motif_folder_path', str(motif_folder_path),
        '--results_output_path', str(results_output_path),
        '--match_store_path', str(match_store_path),
    ])

    assert result.exit_code == 0, result.output
    assert f'1 active sites were found, results saved in {results_output_path}' in result.output
    assert 'Could not find structures for the following IDs: 9XYZ' in result.output

    results_df = pd.read_csv(results_output_path, dtype=str)
    assert list(results_df['structure_ID']) == ['1TGT']
    assert list(results_df['aligned_residues']) == ['HIS 40 ASP 85 SER 170']
    assert list(results_df['structure_ec_number']) == ['3.4.21.4']

    lookup_result = CliRunner().invoke(command_line_interface, ['lookup-match-record', str(match_store_path), 'mot1', '1TGT'])
    assert lookup_result.exit_code == 0, lookup_result.output
    assert 'matched=True precision_factor=1.0' in lookup_result.output
    assert 'aligned_residues=HIS 40 ASP 85 SER 170' in lookup_result.output

    clear_result = CliRunner().invoke(command_line_interface, ['clear-match-records', str(match_store_path), '--motif_ID', 'mot1'])
    assert clear_result.exit_code == 0, clear_result.output
    assert '1 records deleted.' in clear_result.output

def test_all_structures_of_the_database_are_searched_by_default(tmp_path, database_path, motif_folder_path):
    results_output_path = tmp_path / 'results.csv'

    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites',
        '--database_path', str(database_path),
        '--motif_folder_path', str(motif_folder_path),
        '--results_output_path', str(results_output_path),
    ])

    assert result.exit_code == 0, result.output
    assert sorted(pd.read_csv(results_output_path, dtype=str)['structure_ID']) == ['1MOT', '1TGT']

def test_custom_motif_and_structure_file(tmp_path):
    motif_file_path = tmp_path / 'custom.json'
    motif_file_path.write_text(json.dumps(make_triad_motif('custom').to_dict()))
    motif_PDB_file_path = write_PDB_file(make_triad_motif_structure(), tmp_path / 'motif_structure.pdb')
    structure_file_path = write_PDB_file(make_triad_target_structure(), tmp_path / '1TGT.pdb')
    results_output_path = tmp_path / 'results.csv'

    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites',
        '--structure_file', str(structure_file_path),
        '--custom_motif', str(motif_file_path), str(motif_PDB_file_path),
        '--results_output_path', str(results_output_path),
    ])

    assert result.exit_code == 0, result.output
    assert list(pd.read_csv(results_output_path, dtype=str)['motif_ID']) == ['custom']

def test_no_results(tmp_path, database_path, motif_folder_path):
    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites', '1TGT',
        '--database_path', str(database_path),
        '--motif_folder_path', str(motif_folder_path),
        '--ec_number', '6.1',
        '--results_output_path', str(tmp_path / 'results.csv'),
    ])

    assert result.exit_code == 0, result.output
    assert 'No structure with a similar active site was found.' in result.output

def test_motifs_are_required(tmp_path, database_path):
    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites', '1TGT', '--database_path', str(database_path), '--results_output_path', str(tmp_path / 'results.csv'),
    ])

    assert result.exit_code == 2
    assert '--motif_folder_path' in result.output

def test_results_output_path_must_be_a_csv_file(tmp_path, database_path, motif_folder_path):
    result = CliRunner().invoke(command_line_interface, [
        'align-active-sites', '1TGT',
        '--database_path', str(database_path),
        '--motif_folder_path', str(motif_folder_path),
        '--results_output_path', str(tmp_path / 'results.txt'),
    ])

    assert result.exit_code == 2
    assert '.csv' in result.output
