from pathlib import Path
from typing import List, Union

import numba
import numpy as np
import numpy.typing as npt

from pyactivesite.data_containers import Residue, Structural_group


def get_PDB_ID_from_file_path(PDB_file_path: Path) -> str:
    return PDB_file_path.name.split('.')[0]

def residues_to_string(residues: List[Residue]) -> str:
    return ' '.join(str(residue) for residue in residues) # Ex: 'HIS 57 ASP 102 SER 195'

def residue_list_to_sequence(residues: List[Residue]) -> str:
    return ''.join(residue.one_letter_code for residue in residues) # Ex: 'HDS'

def group_list_to_sequence(groups: List[Structural_group]) -> str:
    return ''.join(group.one_letter_code for group in groups)

def levenshtein_distance(sequence_1: str, sequence_2: str) -> int:
    """
    Minimum number of single character insertions, deletions and substitutions (all of cost 1) needed to transform sequence_1
    into sequence_2. Only two rows of the dynamic programming matrix are kept in memory.
    """
    previous_row = list(range(len(sequence_2) + 1))
    for i, character_1 in enumerate(sequence_1, start=1):
        current_row = [i]
        for j, character_2 in enumerate(sequence_2, start=1):
            current_row.append(min(
                previous_row[j] + 1, # Deletion
                current_row[j-1] + 1, # Insertion
                previous_row[j-1] + (character_1 != character_2), # Substitution
            ))
        previous_row = current_row

    return previous_row[-1]


@numba.njit() # type: ignore
def pairwise_euclidean_distance(v1: npt.NDArray[np.float64], v2: npt.NDArray[np.float64]) -> Union[np.float64, float]:
    return np.sqrt(np.sum((v1 - v2)**2)) # type: ignore
