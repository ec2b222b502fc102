import itertools
import math
from typing import Dict, Iterator, List, Optional, Tuple

import networkx as nx
import numpy as np
import numpy.typing as npt
from Bio.SVDSuperimposer import SVDSuperimposer

from pyactivesite.candidate_search import get_candidate_groups_of_motif_residues
from pyactivesite.constants import (BACKBONE_ATOM_NAMES, HYDROGEN_ELEMENTS,
                                    MAX_N_PERMUTATIONS)
from pyactivesite.data_containers import (Alignment, Motif, Residue,
                                          Structural_group, Structure)
from pyactivesite.utils import (group_list_to_sequence, levenshtein_distance,
                                residue_list_to_sequence)

Assignment = Dict[Residue, Structural_group]


class Permutation_bound_exceeded(Exception):
    """Raised when a (motif, structure) pair has too many permutations to be evaluated, so its outcome is unknown."""
    pass


def count_permutations(candidate_map: Dict[Residue, List[Structural_group]]) -> int:
    return math.prod(len(candidate_groups) for candidate_groups in candidate_map.values())

def has_one_to_one_assignment(candidate_map: Dict[Residue, List[Structural_group]]) -> bool:
    """
    Checks whether each motif residue can be assigned a different candidate group, by computing a maximum matching in the bipartite
    graph motif residues <-> candidate groups. When no perfect matching exists, none of the permutations can be one-to-one.
    """
    graph = nx.Graph()
    motif_nodes = [('motif', residue) for residue in candidate_map]
    graph.add_nodes_from(motif_nodes)
    for residue, candidate_groups in candidate_map.items():
        for group in candidate_groups:
            graph.add_edge(('motif', residue), ('structure', id(group)))

    matching: Dict[Tuple[str, object], Tuple[str, object]] = nx.bipartite.maximum_matching(graph, top_nodes=motif_nodes)
    n_matched_residues = sum(1 for node in matching if node[0] == 'motif')

    return n_matched_residues == len(candidate_map)

def find_all_permutations(candidate_map: Dict[Residue, List[Structural_group]]) -> Iterator[Assignment]:
    """
    Lazily yields every assignment of one candidate group per motif residue (i.e the cartesian product of the candidate lists),
    skipping the assignments that would use the same group for two different motif residues. Example with three residues:
    [a] x [b c] x [d e] -> (a b d), (a b e), (a c d), (a c e).
    """
    residues = list(candidate_map.keys())
    for groups in itertools.product(*candidate_map.values()):
        if len(set(groups)) != len(groups):
            continue

        yield dict(zip(residues, groups))

def get_aligned_sequence(assignment: Assignment) -> str:
    """One letter sequence of the assigned groups, ordered by their position in the structure."""
    ordered_groups = sorted(assignment.values(), key=lambda group: (group.residue_number, group.insertion_code))
    return group_list_to_sequence(ordered_groups)

def get_motif_sequence(motif: Motif) -> str:
    return residue_list_to_sequence(motif.active_site_residues)

def acceptable_edit_distance(active_site_size: int, distance: int) -> bool:
    """
    Simple heuristic to decide whether an alignment has an acceptable edit distance. Two residue active sites are never
    specific enough, larger ones must match exactly.
    """
    if active_site_size == 2:
        return False
    elif active_site_size >= 3:
        return distance == 0

    return distance <= 1

def get_edit_distance_of_assignment(assignment: Assignment, motif: Motif) -> int:
    return levenshtein_distance(get_aligned_sequence(assignment), get_motif_sequence(motif))

def is_scoring_atom(atom_name: str, element: str) -> bool:
    # Hydrogens and main chain atoms (N, C, O and the terminal OXT) are left out, the C alpha is kept
    return element.upper() not in HYDROGEN_ELEMENTS and atom_name not in BACKBONE_ATOM_NAMES

def get_scoring_coordinates(groups: List[Structural_group]) -> npt.NDArray[np.float64]:
    coordinates = [
        atom.coord
        for group in groups
            for atom in group.atoms
            if is_scoring_atom(atom.name, atom.element)
    ]
    return np.array(coordinates, dtype=np.float64).reshape(-1, 3)

def calculate_RMSD(reference_coords: npt.NDArray[np.float64], coords: npt.NDArray[np.float64]) -> Optional[float]:
    """
    RMSD between the two sets of coordinates after their optimal superposition. Returns None when the two sets don't have
    the same number of points, as they can't be compared.
    """
    if len(reference_coords) != len(coords) or len(coords) == 0:
        return None

    svd_superimposer = SVDSuperimposer()
    svd_superimposer.set(reference_coords, coords)
    svd_superimposer.run()

    RMSD: float = round(float(svd_superimposer.get_rms()), ndigits=3)

    return RMSD

def calculate_RMSD_of_assignment(assignment: Assignment, motif: Motif, motif_active_site_groups: List[Structural_group]) -> Optional[float]:
    """motif_active_site_groups[i] is the group of the motif's structure corresponding to motif.active_site_residues[i]."""
    assigned_groups = [assignment[residue] for residue in motif.active_site_residues]
    return calculate_RMSD(get_scoring_coordinates(motif_active_site_groups), get_scoring_coordinates(assigned_groups))

def find_best_permutation(
        candidate_map: Dict[Residue, List[Structural_group]], motif: Motif, motif_active_site_groups: List[Structural_group]
    ) -> Optional[Tuple[Assignment, int, float]]:
    """
    Returns the admissible permutation with the lowest RMSD, along with its edit distance and RMSD, or None if no permutation
    is admissible and comparable. Ties are won by the permutation that was enumerated first.
    """
    active_site_size = len(motif.active_site_residues)

    best_permutation: Optional[Tuple[Assignment, int, float]] = None
    for permutation in find_all_permutations(candidate_map):
        distance = get_edit_distance_of_assignment(permutation, motif)
        if not acceptable_edit_distance(active_site_size, distance):
            continue

        RMSD = calculate_RMSD_of_assignment(permutation, motif, motif_active_site_groups)
        if RMSD is None:
            continue

        if best_permutation is None or RMSD < best_permutation[2]:
            best_permutation = (permutation, distance, RMSD)

    return best_permutation

def get_motif_active_site_groups(motif: Motif, motif_structure: Structure) -> List[Structural_group]:
    """Groups of the motif's own structure that correspond to its active site residues, in the same order."""
    motif_active_site_groups: List[Structural_group] = []
    for residue in motif.active_site_residues:
        group = motif_structure.get_group(residue.resname, residue.residue_ID)
        if group is None:
            raise ValueError(f"Could not find residue '{residue}' of motif '{motif.motif_ID}' in structure {motif_structure.structure_ID}.")

        motif_active_site_groups.append(group)

    return motif_active_site_groups

def align_active_site_of_motif_with_structure(
        structure: Structure, motif: Motif, motif_active_site_groups: List[Structural_group], precision_factor: float,
        max_n_permutations: int = MAX_N_PERMUTATIONS
    ) -> Optional[Alignment]:
    """
    Attempts to find the motif's active site in the structure. Returns the best alignment, or None if the motif was not found.
    Raises Permutation_bound_exceeded when the pair has more than max_n_permutations permutations.
    """
    candidate_map = get_candidate_groups_of_motif_residues(structure, motif, precision_factor)
    if not has_one_to_one_assignment(candidate_map):
        return None

    n_permutations = count_permutations(candidate_map)
    if n_permutations > max_n_permutations:
        raise Permutation_bound_exceeded(
            f"{n_permutations} permutations of motif '{motif.motif_ID}' in structure {structure.structure_ID} exceed the maximum of {max_n_permutations}."
        )

    best_permutation = find_best_permutation(candidate_map, motif, motif_active_site_groups)
    if best_permutation is None:
        return None

    permutation, distance, RMSD = best_permutation
    alignment = Alignment(
        motif_ID=motif.motif_ID,
        active_site_residues=list(motif.active_site_residues),
        aligned_residues=[Residue.from_group(permutation[residue]) for residue in motif.active_site_residues],
        min_distance=distance,
        max_distance=distance,
        RMSD=RMSD,
        ec_number=motif.ec_number,
    )

    return alignment
