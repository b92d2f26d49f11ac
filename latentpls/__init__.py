from .cross_validation import get_folds
from .kernels import Kernel
from .kopls import KOPLS
from .nipals import NipalsComponent, nipals
from .opls import OPLS, Mode
from .opls_nipals import OrthogonalComponent, opls_nipals
from .pls import PLS

__all__ = ['OPLS', 'Mode', 'PLS', 'KOPLS', 'Kernel', 'nipals', 'opls_nipals', 'get_folds', 'NipalsComponent',
           'OrthogonalComponent']
