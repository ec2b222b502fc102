import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import numpy as np
import numpy.typing as npt

from pyactivesite.constants import (CANONICAL_AMINO_ACIDS_3TO1,
                                    EXTENDED_AMINO_ACIDS_3TO1,
                                    UNKNOWN_EC_NUMBER)


@dataclass
class Atom():
    name: str # Ex: 'NE2'
    element: str # Ex: 'N'
    coord: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        self.coord = np.asarray(self.coord, dtype=np.float64)

@dataclass(eq=False)
class Structural_group():
    """
    A residue instance observed in a target structure. Groups compare by identity so they can be used as dictionary keys
    and set members, two groups are only equal if they are the same object of the same structure.
    """
    chain_ID: str
    resname: str # Ex: 'HIS'
    residue_number: int
    insertion_code: str = ''
    atoms: List[Atom] = field(default_factory=list)

    @property
    def residue_ID(self) -> str:
        return f'{self.residue_number}{self.insertion_code}'.strip() # Ex: '57', '57A'

    @property
    def one_letter_code(self) -> str:
        return EXTENDED_AMINO_ACIDS_3TO1.get(self.resname, 'X')

    def get_atoms_of_type(self, atom_name: str) -> List[Atom]:
        return [atom for atom in self.atoms if atom.name == atom_name]

@dataclass
class Structure():
    structure_ID: str
    groups: List[Structural_group] = field(default_factory=list)
    ec_number: str = UNKNOWN_EC_NUMBER

    def get_groups_of_type(self, resname: str) -> List[Structural_group]:
        return [group for group in self.groups if group.resname == resname]

    def get_amino_acid_groups(self) -> List[Structural_group]:
        return [group for group in self.groups if group.resname in EXTENDED_AMINO_ACIDS_3TO1]

    def get_group(self, resname: str, residue_ID: str) -> Optional[Structural_group]:
        """First group with the given residue type and residue ID, irrespective of the chain."""
        for group in self.groups:
            if group.resname == resname.upper() and group.residue_ID == residue_ID:
                return group
        return None

    def fingerprint(self) -> str:
        hasher = hashlib.sha1()
        for group in self.groups:
            hasher.update(f'{group.chain_ID}{group.resname}{group.residue_ID}'.encode())
            for atom in group.atoms:
                hasher.update(atom.name.encode())
                hasher.update(atom.coord.round(3).tobytes())
        return hasher.hexdigest()

@dataclass(frozen=True)
class Residue():
    """Motif side residue, also used to report the residues matched in a target structure."""
    resname: str # Ex: 'HIS'
    residue_ID: str # Ex: '57'

    @property
    def one_letter_code(self) -> str:
        return EXTENDED_AMINO_ACIDS_3TO1.get(self.resname, 'X')

    @classmethod
    def from_group(cls, group: Structural_group) -> 'Residue':
        return cls(resname=group.resname, residue_ID=group.residue_ID)

    def __str__(self) -> str:
        return f'{self.resname} {self.residue_ID}'

@dataclass(frozen=True)
class Distance_constraint():
    """Expected distance between an atom of a motif residue and an atom of another motif residue."""
    residue_1_ID: str
    residue_2_ID: str
    atom_1_name: str
    atom_2_name: str
    distance: float

@dataclass
class Motif():
    motif_ID: str
    ec_number: str
    structure_ID: str # Structure the active site residues were taken from
    active_site_residues: List[Residue]
    constraints: List[Distance_constraint] = field(default_factory=list)

    def __post_init__(self) -> None:
        residue_IDs = [residue.residue_ID for residue in self.active_site_residues]
        if len(set(residue_IDs)) != len(residue_IDs):
            raise ValueError(f"Motif '{self.motif_ID}' has duplicated active site residue IDs: {residue_IDs}.")

        for residue in self.active_site_residues:
            if residue.resname not in CANONICAL_AMINO_ACIDS_3TO1:
                raise ValueError(f"Motif '{self.motif_ID}' contains the non canonical residue type '{residue.resname}'.")

        for constraint in self.constraints:
            if constraint.residue_1_ID == constraint.residue_2_ID:
                raise ValueError(f"Motif '{self.motif_ID}' has a constraint between residue {constraint.residue_1_ID} and itself.")
            for residue_ID in (constraint.residue_1_ID, constraint.residue_2_ID):
                if residue_ID not in residue_IDs:
                    raise ValueError(f"Motif '{self.motif_ID}' has a constraint on residue {residue_ID}, which is not part of its active site.")

    def get_residue(self, residue_ID: str) -> Residue:
        for residue in self.active_site_residues:
            if residue.residue_ID == residue_ID:
                return residue
        raise KeyError(residue_ID)

    def get_constraints_of_residue(self, residue: Residue) -> List[Distance_constraint]:
        return [
            constraint for constraint in self.constraints
            if residue.residue_ID in (constraint.residue_1_ID, constraint.residue_2_ID)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Motif':
        return cls(
            motif_ID=str(data['motif_ID']),
            ec_number=str(data.get('ec_number') or UNKNOWN_EC_NUMBER),
            structure_ID=str(data['structure_ID']),
            active_site_residues=[
                Residue(resname=str(residue['resname']).upper(), residue_ID=str(residue['residue_ID']))
                for residue in data['active_site_residues']
            ],
            constraints=[
                Distance_constraint(
                    residue_1_ID=str(constraint['residue_1_ID']), residue_2_ID=str(constraint['residue_2_ID']),
                    atom_1_name=constraint['atom_1_name'], atom_2_name=constraint['atom_2_name'],
                    distance=float(constraint['distance'])
                )
                for constraint in data.get('constraints', [])
            ],
        )

    def fingerprint(self) -> str:
        return hashlib.sha1(json.dumps(self.to_dict(), sort_keys=True).encode()).hexdigest()

@dataclass
class Alignment():
    """An accepted match of a motif's active site in a target structure."""
    motif_ID: str
    active_site_residues: List[Residue]
    aligned_residues: List[Residue] # aligned_residues[i] is the match of active_site_residues[i]
    min_distance: int
    max_distance: int
    RMSD: float
    ec_number: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Alignment':
        return cls(
            motif_ID=data['motif_ID'],
            active_site_residues=[Residue(**residue) for residue in data['active_site_residues']],
            aligned_residues=[Residue(**residue) for residue in data['aligned_residues']],
            min_distance=data['min_distance'],
            max_distance=data['max_distance'],
            RMSD=data['RMSD'],
            ec_number=data['ec_number'],
        )

@dataclass
class Match_record():
    motif_ID: str
    structure_ID: str
    matched: bool
    recorded_on: date
    motif_fingerprint: str = ''
    structure_fingerprint: str = ''
    precision_factor: float = 1.0 # Precision factor of the geometric queries the outcome was computed with
    alignment: Optional[Alignment] = None # Only set for positive records

@dataclass
class Motif_page():
    motifs: List[Motif]
    page_number: int
    total_n_motifs: int

    @property
    def has_content(self) -> bool:
        return len(self.motifs) > 0

@dataclass
class Active_site_alignment_response():
    results: Dict[str, List[Alignment]] # Structure ID -> alignments found in that structure, in no particular order
    failed_structure_IDs: List[str] = field(default_factory=list)
    structure_ec_numbers: Dict[str, str] = field(default_factory=dict)
    skipped_motif_IDs: List[str] = field(default_factory=list)

    @property
    def n_alignments(self) -> int:
        return sum(len(alignments) for alignments in self.results.values())
