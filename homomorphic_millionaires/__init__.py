"""
Additively homomorphic encryption schemes (Paillier, DGK, exponential ElGamal and
Goldwasser-Micali) and two-party secure comparison built on top of them.
"""

# Explicit re-export of all functionalities, such that they can be imported properly. Following
# https://www.python.org/dev/peps/pep-0484/#stub-files and
# https://mypy.readthedocs.io/en/stable/command_line.html#cmdoption-mypy-no-implicit-reexport
from tno.mpc.encryption_schemes.templates.encryption_scheme import (
    EncryptionSchemeWarning as EncryptionSchemeWarning,
)

from homomorphic_millionaires.comparison import KeyHolder as KeyHolder
from homomorphic_millionaires.comparison import QueueCommunicator as QueueCommunicator
from homomorphic_millionaires.comparison import ValueHolder as ValueHolder
from homomorphic_millionaires.config import ComparisonMode as ComparisonMode
from homomorphic_millionaires.config import Configuration as Configuration
from homomorphic_millionaires.dgk import DGK as DGK
from homomorphic_millionaires.dgk import DGKCiphertext as DGKCiphertext
from homomorphic_millionaires.dgk import DGKPublicKey as DGKPublicKey
from homomorphic_millionaires.dgk import DGKSecretKey as DGKSecretKey
from homomorphic_millionaires.elgamal import ElGamal as ElGamal
from homomorphic_millionaires.elgamal import ElGamalCiphertext as ElGamalCiphertext
from homomorphic_millionaires.elgamal import ElGamalPublicKey as ElGamalPublicKey
from homomorphic_millionaires.elgamal import ElGamalSecretKey as ElGamalSecretKey
from homomorphic_millionaires.errors import ChannelError as ChannelError
from homomorphic_millionaires.errors import HomomorphicError as HomomorphicError
from homomorphic_millionaires.errors import ProtocolAbortError as ProtocolAbortError
from homomorphic_millionaires.gm import GM as GM
from homomorphic_millionaires.gm import GMCiphertext as GMCiphertext
from homomorphic_millionaires.gm import GMPublicKey as GMPublicKey
from homomorphic_millionaires.gm import GMSecretKey as GMSecretKey
from homomorphic_millionaires.paillier import Paillier as Paillier
from homomorphic_millionaires.paillier import PaillierCiphertext as PaillierCiphertext
from homomorphic_millionaires.paillier import PaillierPublicKey as PaillierPublicKey
from homomorphic_millionaires.paillier import PaillierSecretKey as PaillierSecretKey

__version__ = "0.1.0"
