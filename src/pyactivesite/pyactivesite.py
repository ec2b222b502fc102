import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import click

from pyactivesite.batch_alignment import (align_active_sites,
                                          custom_motif_type_alias,
                                          get_results_dataframe)
from pyactivesite.constants import MAX_N_PERMUTATIONS, MOTIF_PAGE_SIZE
from pyactivesite.match_store import (In_memory_match_store, Match_store,
                                      SQLite_match_store)
from pyactivesite.motif_source import Paged_motif_source, load_motif_file
from pyactivesite.structure_provider import (PDB_folder_structure_provider,
                                             extract_structure_from_PDB_file)
from pyactivesite.utils import residues_to_string


@click.group(help='pyActiveSite: a tool for the detection of catalytic active sites across protein structures.', context_settings={'max_content_width':2000})
@click.option('--verbose', is_flag=True, default=False, help='Print debug messages.')
def command_line_interface(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def check_results_output_path_option(ctx: Any, param: Any, value: Union[None, Path]) -> Path:
    if value:
        if value.suffix != '.csv':
            raise click.BadParameter("The results_output_path option must be a file path ending in '.csv'")
        return value

    else:
        now_timestamp = datetime.now().strftime(f'%H%M%S%d%m%Y') # Format = hours+minutes+seconds+day+month+year
        return Path(os.getcwd()) / f'pyActiveSite_result_{now_timestamp}.csv'

def load_custom_motifs(custom_motif_files: Tuple[Tuple[Path, Path], ...]) -> List[custom_motif_type_alias]:
    custom_motifs: List[custom_motif_type_alias] = []
    for motif_file_path, PDB_file_path in custom_motif_files:
        try:
            motif = load_motif_file(motif_file_path)
            motif_structure = extract_structure_from_PDB_file(PDB_file_path, motif.structure_ID)
        except (OSError, ValueError) as exception:
            raise click.BadParameter(str(exception), param_hint="'--custom_motif'")

        custom_motifs.append((motif, motif_structure))

    return custom_motifs

def get_match_store(match_store_path: Optional[Path]) -> Match_store:
    if match_store_path is None:
        return In_memory_match_store()
    return SQLite_match_store(match_store_path)

@command_line_interface.command(name='align-active-sites')
@click.argument('structure_IDs', nargs=-1) # -1 => Unlimited number of arguments
@click.option('--database_path', type=click.Path(exists=True, file_okay=False, dir_okay=True, readable=True, path_type=Path), default=None,
              help='Full path of the directory containing the PDB files of the structures to search (e.g: /home/user/Downloads/PDB). The file detection algorithm is recursive, so PDB files in subfolders are also found. Motif source structures are also looked up in this directory.')
@click.option('--pattern', type=str, default='*.pdb', show_default=True,
              help="File extension pattern of the PDB files in the database, including compression. Examples: *.pdb, *.pdb.gz, *.ent , etcetc . Note the use of the '*' wildcard.")
@click.option('--structure_file', 'structure_files', multiple=True, type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
              help='PDB file of a structure to search, in addition to the database. Can be given multiple times. The structure ID is the file name without its extensions.')
@click.option('--motif_folder_path', type=click.Path(exists=True, file_okay=False, dir_okay=True, readable=True, path_type=Path), default=None,
              help='Full path of the directory containing the motif files (JSON).')
@click.option('--ec_number', type=str, default=None,
              help="Only search for the motifs of the given EC class, matched number by number (e.g: '3.4.21' matches 3.4.21.4 but not 3.4.211.1). By default all the motifs are searched.")
@click.option('--custom_motif', 'custom_motif_files', multiple=True, nargs=2, type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
              help='Motif file (JSON) and PDB file of its source structure of a custom motif to search in addition to the motifs of the motif folder. Can be given multiple times.')
@click.option('--precision_factor', type=click.FloatRange(min=0.0, min_open=True), default=1.0, show_default=True,
              help='Multiplier of the motif distances and of the distance tolerance. Values above 1 accept residues further apart than in the motif.')
@click.option('--match_store_path', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='SQLite file where the outcome of each (motif, structure) pair is recorded, so that pairs already evaluated are not computed again. By default outcomes are only remembered for the duration of the command.')
@click.option('--max_n_permutations', type=click.IntRange(min=1), default=MAX_N_PERMUTATIONS, show_default=True,
              help='Maximum number of residue permutations evaluated for a single (motif, structure) pair. Pairs exceeding it are skipped with a warning and are not recorded in the match store.')
@click.option('--page_size', type=click.IntRange(min=1), default=MOTIF_PAGE_SIZE, show_default=True,
              help='Number of motifs loaded per page.')
@click.option('--results_output_path', type=click.Path(path_type=Path), default=None, callback=check_results_output_path_option,
              help='Full path of the csv file where the results will be saved (e.g: /home/user/Downloads/active_sites.csv). If not given, the results will be saved in the current working directory in a file named with the current timestamp (e.g: pyActiveSite_result_14230214102022.csv)')
@click.option('--sort_results/--no-sort_results', default=True, show_default=True,
              help='Sort the results by increasing RMSD.')
@click.option('--n_cores', default=1, show_default=True,
              help='Number of cores to use.')
def align_active_sites_command(
    structure_ids: Tuple[str, ...], database_path: Optional[Path], pattern: str, structure_files: Tuple[Path, ...], motif_folder_path: Optional[Path],
    ec_number: Optional[str], custom_motif_files: Tuple[Tuple[Path, Path], ...], precision_factor: float, match_store_path: Optional[Path],
    max_n_permutations: int, page_size: int, results_output_path: Path, sort_results: bool, n_cores: int
    ) -> None:
    """
    Command to search the active sites of motifs in protein structures.

    \b
    Arguments
    ---------
    STRUCTURE_IDS  Space separated IDs of the structures to search (e.g: 1A0J 2PTN). If none are given, all the structures of the database and of the --structure_file options are searched.
    """
    if motif_folder_path is None and not custom_motif_files:
        raise click.UsageError('At least one of --motif_folder_path or --custom_motif must be given.')

    structure_provider = PDB_folder_structure_provider(database_path, pattern, structure_files)
    motif_source = Paged_motif_source.from_folder(motif_folder_path, page_size) if motif_folder_path else Paged_motif_source([], page_size)

    response = align_active_sites(
        structure_IDs=structure_ids if structure_ids else structure_provider.structure_IDs,
        structure_provider=structure_provider,
        motif_source=motif_source,
        ec_number=ec_number,
        custom_motifs=load_custom_motifs(custom_motif_files),
        precision_factor=precision_factor,
        match_store=get_match_store(match_store_path),
        n_cores=n_cores,
        max_n_permutations=max_n_permutations,
    )

    results_df = get_results_dataframe(response, sort_results)
    results_df.to_csv(results_output_path, index=False)
    if len(results_df) == 0:
        print('No structure with a similar active site was found.')
    else:
        print(f'{len(results_df)} active sites were found, results saved in {results_output_path}')

    if response.failed_structure_IDs:
        print(f"Could not find structures for the following IDs: {' '.join(response.failed_structure_IDs)}")

    return

@command_line_interface.command()
@click.argument('match_store_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('motif_ID')
@click.argument('structure_ID')
def lookup_match_record(match_store_path: Path, motif_id: str, structure_id: str) -> None:
    """
    Command to show the recorded outcome of a (motif, structure) pair.
    """
    match_record = SQLite_match_store(match_store_path).lookup(motif_id, structure_id)
    if match_record is None:
        print(f"No record for motif '{motif_id}' and structure '{structure_id}'.")
        return

    print(f"motif={match_record.motif_ID} structure={match_record.structure_ID} matched={match_record.matched} precision_factor={match_record.precision_factor} recorded_on={match_record.recorded_on.isoformat()}")
    if match_record.alignment is not None:
        alignment = match_record.alignment
        print(f'active_site_residues={residues_to_string(alignment.active_site_residues)} aligned_residues={residues_to_string(alignment.aligned_residues)} RMSD={alignment.RMSD}')

    return

@command_line_interface.command()
@click.argument('match_store_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--motif_ID', 'motif_id', type=str, default=None, help='Only delete the records of this motif.')
def clear_match_records(match_store_path: Path, motif_id: Optional[str]) -> None:
    """
    Command to delete the records of a match store, for example after motif definitions have been changed.
    """
    n_deleted_records = SQLite_match_store(match_store_path).clear(motif_id)
    print(f'{n_deleted_records} records deleted.')
    return

if __name__ == '__main__':
    command_line_interface(max_content_width=2000) # max_content_width=2000 allows help texts to span the entire width of the terminal
