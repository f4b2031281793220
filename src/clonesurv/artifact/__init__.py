"""Internal artifact helpers."""

from clonesurv.artifact.manifest import Manifest, build_manifest
from clonesurv.artifact.store import ArtifactBundle, load_artifact, save_artifact

__all__ = ["ArtifactBundle", "Manifest", "build_manifest", "load_artifact", "save_artifact"]
