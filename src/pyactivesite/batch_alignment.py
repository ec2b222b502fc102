import logging
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm
from typing_extensions import TypeAlias

from pyactivesite.active_site_alignment import (
    Permutation_bound_exceeded, align_active_site_of_motif_with_structure,
    get_motif_active_site_groups)
from pyactivesite.constants import MAX_N_PERMUTATIONS
from pyactivesite.data_containers import (Active_site_alignment_response,
                                          Alignment, Match_record, Motif,
                                          Structural_group, Structure)
from pyactivesite.match_store import (In_memory_match_store, Match_store,
                                      record_is_reusable)
from pyactivesite.motif_source import Paged_motif_source
from pyactivesite.structure_provider import (Structure_acquisition_error,
                                             Structure_provider)
from pyactivesite.utils import residues_to_string

logger = logging.getLogger(__name__)

custom_motif_type_alias: TypeAlias = Tuple[Motif, Structure] # A user given motif along with the structure its active site residues come from

RESULTS_DATAFRAME_COLUMNS = [
    'structure_ID', 'structure_ec_number', 'motif_ID', 'motif_ec_number', 'active_site_residues', 'aligned_residues',
    'min_distance', 'max_distance', 'RMSD',
]


def get_tqdm_progress_bar(total: int, desc: str) -> tqdm:
    return tqdm(total=total, desc=desc, position=0, leave=True, smoothing=0, bar_format='{l_bar}{bar} | {n_fmt}/{total_fmt} | Ellapsed={elapsed}; Remaining={remaining} |')

def get_structures_to_align(
        motif: Motif, structures: List[Structure], structure_fingerprints: Dict[str, str], results: Dict[str, List[Alignment]],
        evaluated_motifs_map: Dict[str, Set[str]], match_store: Match_store, precision_factor: float
    ) -> List[Structure]:
    """
    Returns the structures that the motif must actually be aligned with. Pairs that were already evaluated during this batch are dropped,
    and pairs with a reusable match record are answered directly from the record (cached alignment or no alignment).
    """
    motif_fingerprint = motif.fingerprint()

    structures_to_align: List[Structure] = []
    for structure in structures:
        structure_ID = structure.structure_ID
        if motif.motif_ID in evaluated_motifs_map[structure_ID]:
            continue
        evaluated_motifs_map[structure_ID].add(motif.motif_ID)

        match_record = match_store.lookup(motif.motif_ID, structure_ID)
        if match_record is not None:
            if record_is_reusable(match_record, motif_fingerprint, structure_fingerprints[structure_ID], precision_factor):
                logger.debug(f"Reusing the match record of motif '{motif.motif_ID}' and structure {structure_ID} (matched={match_record.matched}).")
                if match_record.matched and match_record.alignment is not None:
                    results[structure_ID].append(match_record.alignment)
                continue

            logger.debug(f"The match record of motif '{motif.motif_ID}' and structure {structure_ID} is stale (or was computed with another precision factor) and will be overwritten.")

        structures_to_align.append(structure)

    return structures_to_align

def try_to_align_active_site(
        structure: Structure, motif: Motif, motif_active_site_groups: List[Structural_group], precision_factor: float, max_n_permutations: int
    ) -> Tuple[Optional[Alignment], Optional[str]]:
    """
    Runs in the workers. Returns the alignment (or None) and, if the pair had too many permutations to be evaluated, the reason
    why it was skipped.
    """
    try:
        return align_active_site_of_motif_with_structure(structure, motif, motif_active_site_groups, precision_factor, max_n_permutations), None
    except Permutation_bound_exceeded as exception:
        return None, str(exception)

def align_motif_with_structures(
        motif: Motif, motif_active_site_groups: List[Structural_group], structures: List[Structure], structure_fingerprints: Dict[str, str],
        results: Dict[str, List[Alignment]], evaluated_motifs_map: Dict[str, Set[str]], match_store: Match_store,
        precision_factor: float, max_n_permutations: int, parallel: Parallel
    ) -> None:
    """
    Aligns the motif with all the structures in parallel. The workers only compute alignments, the results and match records are
    written here as the results come back, so no state is shared between the workers.
    """
    structures_to_align = get_structures_to_align(
        motif, structures, structure_fingerprints, results, evaluated_motifs_map, match_store, precision_factor
    )

    delayed_func: Callable[[Structure, Motif, List[Structural_group], float, int], Tuple[Optional[Alignment], Optional[str]]] = delayed(try_to_align_active_site)
    results_generator: Iterator[Tuple[Optional[Alignment], Optional[str]]] = parallel(
        delayed_func(structure, motif, motif_active_site_groups, precision_factor, max_n_permutations)
        for structure in structures_to_align
    )

    motif_fingerprint = motif.fingerprint()
    for structure, (alignment, skip_reason) in zip(structures_to_align, results_generator, strict=True):
        if skip_reason is not None:
            # The pair was not evaluated, so its outcome is unknown and must not be recorded
            logger.warning(f'Skipping a pair: {skip_reason}')
            continue

        match_store.record(Match_record(
            motif_ID=motif.motif_ID,
            structure_ID=structure.structure_ID,
            matched=alignment is not None,
            recorded_on=date.today(),
            motif_fingerprint=motif_fingerprint,
            structure_fingerprint=structure_fingerprints[structure.structure_ID],
            precision_factor=precision_factor,
            alignment=alignment,
        ))

        if alignment is not None:
            results[structure.structure_ID].append(alignment)

    return

def get_motif_active_site_groups_or_none(motif: Motif, motif_structure: Optional[Structure]) -> Optional[List[Structural_group]]:
    if motif_structure is None:
        logger.error(f"Skipping motif '{motif.motif_ID}': could not acquire its structure {motif.structure_ID}.")
        return None

    try:
        return get_motif_active_site_groups(motif, motif_structure)
    except ValueError as exception:
        logger.error(f"Skipping motif '{motif.motif_ID}': {exception}")
        return None

def get_motif_structure(motif: Motif, structure_provider: Structure_provider, motif_structures_cache: Dict[str, Optional[Structure]]) -> Optional[Structure]:
    """Motifs often share their source structure, so acquired structures (and failures) are cached for the duration of the batch."""
    if motif.structure_ID not in motif_structures_cache:
        try:
            motif_structures_cache[motif.structure_ID] = structure_provider.get_structure(motif.structure_ID)
        except Structure_acquisition_error:
            motif_structures_cache[motif.structure_ID] = None

    return motif_structures_cache[motif.structure_ID]

def warn_if_motif_is_shadowed(motif: Motif, aligned_motif_fingerprints: Dict[str, str]) -> None:
    """
    Motifs are identified by their ID within a batch, a motif whose ID was already aligned is not aligned again. Logs a warning
    when the two definitions differ (ex: a custom motif reusing the ID of a database motif).
    """
    motif_fingerprint = motif.fingerprint()
    aligned_motif_fingerprint = aligned_motif_fingerprints.setdefault(motif.motif_ID, motif_fingerprint)
    if aligned_motif_fingerprint != motif_fingerprint:
        logger.warning(f"Motif '{motif.motif_ID}' is shadowed by an already aligned motif with the same ID but a different definition, it will not be aligned.")

def align_active_sites(
        structure_IDs: Iterable[str], structure_provider: Structure_provider, motif_source: Paged_motif_source, ec_number: Optional[str] = None,
        custom_motifs: Sequence[custom_motif_type_alias] = (), precision_factor: float = 1.0, match_store: Optional[Match_store] = None,
        n_cores: int = 1, max_n_permutations: int = MAX_N_PERMUTATIONS
    ) -> Active_site_alignment_response:
    """
    Searches the active site of every motif of the motif source (restricted to the given EC class) and of every custom motif
    in every structure. Motifs are processed one after the other, page by page, and custom motifs last. For each motif, the structures
    are processed in parallel.
    """
    match_store = match_store if match_store is not None else In_memory_match_store()

    structures, failed_structure_IDs = structure_provider.get_structures(structure_IDs)
    structure_fingerprints = {structure.structure_ID:structure.fingerprint() for structure in structures}

    # One result list per structure, allocated before any alignment is done
    results: Dict[str, List[Alignment]] = {structure.structure_ID:[] for structure in structures}
    evaluated_motifs_map: Dict[str, Set[str]] = {structure.structure_ID:set() for structure in structures}
    skipped_motif_IDs: List[str] = []
    motif_structures_cache: Dict[str, Optional[Structure]] = {}
    aligned_motif_fingerprints: Dict[str, str] = {}

    page_number = 0
    motif_page = motif_source.get_page(ec_number, page_number)
    logger.info(f'Aligning active sites of {len(structures)} structures with {motif_page.total_n_motifs} motifs & {len(custom_motifs)} custom motifs.')

    tqdm_progress_bar = get_tqdm_progress_bar(total=motif_page.total_n_motifs + len(custom_motifs), desc='Aligned motifs')
    with Parallel(n_jobs=n_cores, return_as='generator') as parallel:
        # Motifs from the motif source
        while motif_page.has_content:
            for motif in motif_page.motifs:
                motif_structure = get_motif_structure(motif, structure_provider, motif_structures_cache)
                motif_active_site_groups = get_motif_active_site_groups_or_none(motif, motif_structure)
                if motif_active_site_groups is None:
                    skipped_motif_IDs.append(motif.motif_ID)
                else:
                    warn_if_motif_is_shadowed(motif, aligned_motif_fingerprints)
                    align_motif_with_structures(
                        motif, motif_active_site_groups, structures, structure_fingerprints, results, evaluated_motifs_map, match_store,
                        precision_factor, max_n_permutations, parallel
                    )
                tqdm_progress_bar.update()

            page_number += 1
            motif_page = motif_source.get_page(ec_number, page_number)

        # Custom motifs given by the user
        for custom_motif, custom_motif_structure in custom_motifs:
            motif_active_site_groups = get_motif_active_site_groups_or_none(custom_motif, custom_motif_structure)
            if motif_active_site_groups is None:
                skipped_motif_IDs.append(custom_motif.motif_ID)
            else:
                warn_if_motif_is_shadowed(custom_motif, aligned_motif_fingerprints)
                align_motif_with_structures(
                    custom_motif, motif_active_site_groups, structures, structure_fingerprints, results, evaluated_motifs_map, match_store,
                    precision_factor, max_n_permutations, parallel
                )
            tqdm_progress_bar.update()

    tqdm_progress_bar.close()

    response = Active_site_alignment_response(
        results=results,
        failed_structure_IDs=failed_structure_IDs,
        structure_ec_numbers={structure.structure_ID:structure.ec_number for structure in structures},
        skipped_motif_IDs=skipped_motif_IDs,
    )

    logger.info(f'Found {response.n_alignments} results')
    if failed_structure_IDs:
        logger.error(f'Could not find structures for the following IDs: {failed_structure_IDs}')

    return response

def get_results_dataframe(response: Active_site_alignment_response, sort_results: bool = True) -> pd.DataFrame:
    """One row per alignment. When sorted, the best alignments (lowest RMSD) come first."""
    rows = [
        (
            structure_ID,
            response.structure_ec_numbers.get(structure_ID),
            alignment.motif_ID,
            alignment.ec_number,
            residues_to_string(alignment.active_site_residues),
            residues_to_string(alignment.aligned_residues),
            alignment.min_distance,
            alignment.max_distance,
            alignment.RMSD,
        )
        for structure_ID, alignments in response.results.items()
            for alignment in alignments
    ]
    df = pd.DataFrame(rows, columns=RESULTS_DATAFRAME_COLUMNS)

    if sort_results:
        df.sort_values(by=['RMSD', 'structure_ID', 'motif_ID'], ignore_index=True, inplace=True)

    return df
