"""Digital topology module

Cells of a digital domain are represented in Khalimsky coordinates;
the primal and dual complexes over those cells share their index spaces

"""
from enum import Enum

import numpy as np

# dtypes enforced for indices referring to cells, and for orientation signs;
# these types are used globally throughout the package
index_dtype = np.int32
sign_dtype = np.int8
coordinate_dtype = np.int64


class Duality(Enum):
    PRIMAL = 'primal'
    DUAL = 'dual'

    @property
    def other(self):
        return Duality.DUAL if self is Duality.PRIMAL else Duality.PRIMAL

    def __repr__(self):
        return self.name


PRIMAL = Duality.PRIMAL
DUAL = Duality.DUAL


class TagMismatch(TypeError):
    """Raised when the (order, duality) tags or calculus of two operands do not agree"""
    pass


class DuplicateCellError(ValueError):
    pass


class MissingCellError(KeyError):
    pass


class StaleComplexError(RuntimeError):
    """Raised when a form or operator is used after its calculus has been mutated"""
    pass
