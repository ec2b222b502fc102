import pytest

from builders import (make_triad_motif, make_triad_motif_structure,
                      make_triad_target_structure)
from pyactivesite.data_containers import Motif, Structure


@pytest.fixture
def triad_motif() -> Motif:
    return make_triad_motif()

@pytest.fixture
def triad_motif_structure() -> Structure:
    return make_triad_motif_structure()

@pytest.fixture
def triad_target_structure() -> Structure:
    return make_triad_target_structure()
