from Bio.Data.IUPACData import protein_letters_3to1, protein_letters_3to1_extended

# By default biopython 3 letter codes are cammel case (ie: 'Gly'), but they are all upper case (ie: 'GLY') in parsed PDB files
CANONICAL_AMINO_ACIDS_3TO1 = {res_3_letters.upper():res_1_letter for res_3_letters, res_1_letter in protein_letters_3to1.items()}
EXTENDED_AMINO_ACIDS_3TO1 = {res_3_letters.upper():res_1_letter for res_3_letters, res_1_letter in protein_letters_3to1_extended.items()}

# Error margin (in Å) of the geometric distance queries, scaled by the precision factor. A pair of atoms matches a motif
# distance d if their measured distance is below d*precision_factor by less than DISTANCE_ERROR_MARGIN*precision_factor.
DISTANCE_ERROR_MARGIN = 4.0

# Main chain atoms left out of the RMSD, the C alpha is kept. OXT only exists in C-terminal residues
BACKBONE_ATOM_NAMES = frozenset({'N', 'C', 'O', 'OXT'})
HYDROGEN_ELEMENTS = frozenset({'H', 'D'})

UNKNOWN_EC_NUMBER = 'unknown'

MOTIF_PAGE_SIZE = 20

# Upper bound on the size of the cartesian product of candidate residues of a single (motif, structure) pair.
MAX_N_PERMUTATIONS = 100_000
