import gzip
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from Bio.PDB import PDBParser
from Bio.PDB.Structure import Structure as Biopython_structure_type

from pyactivesite.constants import EXTENDED_AMINO_ACIDS_3TO1, UNKNOWN_EC_NUMBER
from pyactivesite.data_containers import Atom, Structural_group, Structure
from pyactivesite.utils import get_PDB_ID_from_file_path


class Structure_acquisition_error(ValueError):
    pass


def parse_PDB_with_biopython(PDB_file_path: Path) -> Biopython_structure_type:
    """
    """
    parser = PDBParser(QUIET=True)
    parsed_PDB_file: Biopython_structure_type
    if len(PDB_file_path.suffixes) >= 2 and PDB_file_path.suffixes[-1] == '.gz':
        with gzip.open(PDB_file_path, 'rt') as decompressed_PDB_file_handle:
            parsed_PDB_file = parser.get_structure('', decompressed_PDB_file_handle) # The biopython PDB parser also accepts open file handles
    elif PDB_file_path.suffix in ('.bz2', '.zip', '.xz'):
        raise ValueError(f"<{PDB_file_path.suffix}> compressed PDB files are currently not supported, only gunziped (.gz) compressed PDB files are.")
    else:
        parsed_PDB_file = parser.get_structure('', PDB_file_path)

    return parsed_PDB_file

def get_EC_number_from_header(header: Dict[str, Any]) -> str:
    """
    EC number of the first compound of the PDB header that has one. Biopython stores it under 'ec_number' or 'ec' depending
    on how the COMPND record is written.
    """
    compounds: Dict[str, Dict[str, str]] = header.get('compound') or {}
    for compound in compounds.values():
        for key in ('ec_number', 'ec'):
            ec_number = compound.get(key)
            if ec_number:
                return ec_number.strip()

    return UNKNOWN_EC_NUMBER

def convert_biopython_structure(parsed_PDB_file: Biopython_structure_type, structure_ID: str) -> Structure:
    """
    Only the amino acid residues of the first model are kept, hetero residues (ligands, waters, ...) are ignored.
    """
    first_model = next(parsed_PDB_file.get_models(), None)
    if first_model is None:
        return Structure(structure_ID=structure_ID, groups=[], ec_number=get_EC_number_from_header(parsed_PDB_file.header))

    groups: List[Structural_group] = []
    for chain in first_model:
        for biopython_residue_object in chain:
            hetero_flag, residue_number, insertion_code = biopython_residue_object.id # Ex: (' ', 57, ' ')
            if hetero_flag.strip() or biopython_residue_object.resname not in EXTENDED_AMINO_ACIDS_3TO1:
                continue

            groups.append(Structural_group(
                chain_ID=chain.id,
                resname=biopython_residue_object.resname,
                residue_number=residue_number,
                insertion_code=insertion_code.strip(),
                atoms=[Atom(name=atom.get_name(), element=atom.element, coord=atom.coord) for atom in biopython_residue_object],
            ))

    return Structure(structure_ID=structure_ID, groups=groups, ec_number=get_EC_number_from_header(parsed_PDB_file.header))

def extract_structure_from_PDB_file(PDB_file_path: Path, structure_ID: Optional[str] = None) -> Structure:
    parsed_PDB_file = parse_PDB_with_biopython(PDB_file_path)
    return convert_biopython_structure(parsed_PDB_file, structure_ID or get_PDB_ID_from_file_path(PDB_file_path))


class Structure_provider(ABC):
    """Turns structure IDs into in-memory structures."""

    @abstractmethod
    def get_structure(self, structure_ID: str) -> Structure:
        """Raises Structure_acquisition_error if the structure can't be acquired."""
        ...

    def get_structures(self, structure_IDs: Iterable[str]) -> Tuple[List[Structure], List[str]]:
        """Returns the structures that could be acquired and the IDs of those that could not, each ID being handled once."""
        structures: List[Structure] = []
        failed_structure_IDs: List[str] = []
        for structure_ID in dict.fromkeys(structure_IDs): # Drops duplicated IDs but keeps the order
            try:
                structures.append(self.get_structure(structure_ID))
            except Structure_acquisition_error:
                failed_structure_IDs.append(structure_ID)

        return structures, failed_structure_IDs


class In_memory_structure_provider(Structure_provider):
    def __init__(self, structures: Iterable[Structure]) -> None:
        self._structures: Dict[str, Structure] = {structure.structure_ID.lower():structure for structure in structures}

    def get_structure(self, structure_ID: str) -> Structure:
        structure = self._structures.get(structure_ID.lower())
        if structure is None:
            raise Structure_acquisition_error(f"Unknown structure '{structure_ID}'.")
        return structure


class PDB_folder_structure_provider(Structure_provider):
    """
    Resolves structure IDs to PDB files found in a database folder (searched recursively) or given explicitly, for example uploaded
    by the user. IDs are the file names without their extensions and are matched case insensitively.
    """

    def __init__(self, database_path: Optional[Path] = None, pattern: str = '*.pdb', structure_files: Sequence[Path] = ()) -> None:
        self._PDB_files: Dict[str, Path] = {}
        if database_path is not None:
            for PDB_file_path in sorted(Path(database_path).rglob(pattern)): # rglob = recursively glob through the directory and subdirectory
                self._PDB_files.setdefault(get_PDB_ID_from_file_path(PDB_file_path).lower(), PDB_file_path)

        # Explicitly given files take precedence over the database
        for PDB_file_path in structure_files:
            self._PDB_files[get_PDB_ID_from_file_path(Path(PDB_file_path)).lower()] = Path(PDB_file_path)

    @property
    def structure_IDs(self) -> List[str]:
        return [get_PDB_ID_from_file_path(PDB_file_path) for PDB_file_path in self._PDB_files.values()]

    def get_structure(self, structure_ID: str) -> Structure:
        PDB_file_path = self._PDB_files.get(structure_ID.lower())
        if PDB_file_path is None:
            raise Structure_acquisition_error(f"Could not find a PDB file for structure '{structure_ID}'.")

        try:
            return extract_structure_from_PDB_file(PDB_file_path, structure_ID)
        except (OSError, ValueError) as exception:
            raise Structure_acquisition_error(f"Could not parse the PDB file {PDB_file_path} of structure '{structure_ID}': {exception}") from exception

