"""
Two-party secure comparison, equality, selection, multiplication and division between a Value
Holder and a Key Holder, following https://eprint.iacr.org/2018/1100.pdf.
"""

# Explicit re-export of all functionalities, such that they can be imported properly. Following
# https://www.python.org/dev/peps/pep-0484/#stub-files and
# https://mypy.readthedocs.io/en/stable/command_line.html#cmdoption-mypy-no-implicit-reexport
from .communicator import Communicator as Communicator
from .communicator import QueueCommunicator as QueueCommunicator
from .communicator import ClosableCommunicator as ClosableCommunicator
from .key_holder import KeyHolder as KeyHolder
from .session import ComparisonSession as ComparisonSession
from .session import Operation as Operation
from .utils import from_bits as from_bits
from .utils import to_bits as to_bits
from .value_holder import ValueHolder as ValueHolder
