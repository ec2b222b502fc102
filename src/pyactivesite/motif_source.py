import json
from json import JSONDecodeError
from pathlib import Path
from typing import Iterable, List, Optional

from pyactivesite.constants import MOTIF_PAGE_SIZE
from pyactivesite.data_containers import Motif, Motif_page


def load_motif_file(motif_file_path: Path) -> Motif:
    """
    Motif files are JSON documents, for example:
    {"motif_ID": "1a0j", "ec_number": "3.4.21.4", "structure_ID": "1a0j",
     "active_site_residues": [{"resname": "HIS", "residue_ID": "57"}, ...],
     "constraints": [{"residue_1_ID": "57", "residue_2_ID": "102", "atom_1_name": "NE2", "atom_2_name": "OD1", "distance": 2.7}, ...]}
    """
    try:
        with open(motif_file_path, 'rt') as file_handle:
            motif_data = json.load(file_handle)
        return Motif.from_dict(motif_data)
    except (JSONDecodeError, KeyError, TypeError, ValueError) as exception:
        raise ValueError(f"Invalid motif file {motif_file_path}: {exception}") from exception

def ec_number_matches_filter(ec_number: str, ec_number_filter: Optional[str]) -> bool:
    # Whole numbers only. Ex: the '3.4' filter matches 3.4.21.4 and 3.4.22.1, but not 3.41.1.1
    if not ec_number_filter:
        return True
    return ec_number == ec_number_filter or ec_number.startswith(ec_number_filter.rstrip('.') + '.')


class Paged_motif_source():
    """Serves motifs page by page, sorted by motif ID, optionally restricted to the motifs of an EC class (ex: '3.4' or '3.4.21')."""

    def __init__(self, motifs: Iterable[Motif], page_size: int = MOTIF_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError(f'page_size must be at least 1, but was {page_size}.')

        self.motifs: List[Motif] = sorted(motifs, key=lambda motif: motif.motif_ID)
        self.page_size = page_size

    @classmethod
    def from_folder(cls, motif_folder_path: Path, page_size: int = MOTIF_PAGE_SIZE) -> 'Paged_motif_source':
        return cls((load_motif_file(motif_file_path) for motif_file_path in Path(motif_folder_path).rglob('*.json')), page_size)

    def get_page(self, ec_number_filter: Optional[str], page_number: int) -> Motif_page:
        filtered_motifs = [motif for motif in self.motifs if ec_number_matches_filter(motif.ec_number, ec_number_filter)]
        start = page_number * self.page_size

        return Motif_page(
            motifs=filtered_motifs[start:start + self.page_size],
            page_number=page_number,
            total_n_motifs=len(filtered_motifs),
        )
