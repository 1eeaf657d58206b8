from . import errors
from . import structure
from . import gas
from . import tree
from .errors import (
    AnnealingWarning,
    ConfigError,
    DataError,
    FittingError,
    ScenarioTreeError,
    StructureError,
)
from .structure import NodalPartition, checktree, nodal_partition
from .gas import NeuralGas
from .tree import FromData, ScenarioTree, buildtree
