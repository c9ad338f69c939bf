"""Services for mediaingest."""
from .classifier import TypeClassifier, classify
from .converter import ConversionEngine
from .folders import RemoteFolderProvisioner
from .hashing import blake3_file
from .session import MegaSessionFactory
from .transfer import DualArtifactUploader
from .workspace import LocalWorkspace

__all__ = [
    "TypeClassifier",
    "classify",
    "ConversionEngine",
    "RemoteFolderProvisioner",
    "blake3_file",
    "MegaSessionFactory",
    "DualArtifactUploader",
    "LocalWorkspace",
]
