# src/vectorio/vsi.py

"""
This module composes GDAL virtual file system paths (/vsicurl/, /vsizip/, ...)
from a base location and a list of access stages.

Composition is pure string work: nothing is opened or fetched here.
"""

import logging
import re
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .errors import InvalidStageOrder

log = logging.getLogger(__name__)

__all__ = [
    "Stage",
    "compose",
    "split",
    "is_virtual",
    "is_remote"
]

_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_REMOTE_SCHEMES = ("http://", "https://", "ftp://")

class Stage(Enum):
    """
    Access transformations understood by GDAL.

    Stages:
        NETWORK: Fetch the base URL over HTTP(S)/FTP with range requests.
        ZIP: Read a member of a zip archive (also reachable as ARCHIVE).
        TAR: Read a member of a (optionally gzipped) tar archive.
        GZIP: Decompress a single gzipped file.
    """
    NETWORK = "/vsicurl/"
    ZIP = "/vsizip/"
    TAR = "/vsitar/"
    GZIP = "/vsigzip/"
    ARCHIVE = "/vsizip/"

    @property
    def is_transport(self) -> bool:
        return self is Stage.NETWORK

    @property
    def is_archive(self) -> bool:
        return not self.is_transport

    @property
    def prefix(self) -> str:
        return self.value

_STAGE_NAMES = {
    "network": Stage.NETWORK,
    "curl": Stage.NETWORK,
    "vsicurl": Stage.NETWORK,
    "http": Stage.NETWORK,
    "remote": Stage.NETWORK,
    "zip": Stage.ZIP,
    "vsizip": Stage.ZIP,
    "archive": Stage.ZIP,
    "tar": Stage.TAR,
    "vsitar": Stage.TAR,
    "gzip": Stage.GZIP,
    "gz": Stage.GZIP,
    "vsigzip": Stage.GZIP
}

def _to_stage(stage: Union[Stage, str]) -> Stage:
    if isinstance(stage, Stage):
        return stage
    key = str(stage).strip().strip("/").lower()
    if key not in _STAGE_NAMES:
        raise InvalidStageOrder(f"Unknown stage '{stage}'. Valid stages: {sorted(_STAGE_NAMES)}")
    return _STAGE_NAMES[key]

def is_remote(path: str) -> bool:
    return str(path).lower().startswith(_REMOTE_SCHEMES)

def is_virtual(path: str) -> bool:
    """True for GDAL /vsi paths and for any URL-like location."""
    path = str(path)
    return path.startswith("/vsi") or bool(_URL_RE.match(path))

def compose(
    base_url: str,
    stages: Sequence[Union[Stage, str]],
    member: Optional[str] = None
) -> str:
    """
    Builds a single GDAL path from a base location and access stages.

    The stages are normalized: the transport stage is applied first (it sits
    right in front of the base URL) and the archive stage wraps it, so
    ['zip', 'network'] and ['network', 'zip'] compose the same string:

        compose("https://host/data.zip", ["zip", "network"], "roads.shp")
        -> "/vsizip//vsicurl/https://host/data.zip/roads.shp"

    The network prefix is therefore innermost in the string, never outermost:
    GDAL reads the chain right to left, so the stage applied last (the
    archive) must lead.

    Args:
        base_url: Local path or remote URL of the outermost file.
        stages: Access stages, as Stage members or names ('network', 'zip', ...).
        member: Path of the dataset inside the archive.

    Returns:
        str: The composed virtual path.

    Raises:
        InvalidStageOrder: If the stages cannot be applied to the base.
    """
    base = str(base_url).strip() if base_url is not None else ""
    if not base:
        raise InvalidStageOrder("A base path or URL is required", path=base_url)

    resolved = [_to_stage(s) for s in stages]

    seen = set()
    for stage in resolved:
        if stage in seen:
            raise InvalidStageOrder(f"Stage {stage.name} given more than once", path=base)
        seen.add(stage)

    transports = [s for s in resolved if s.is_transport]
    archives = [s for s in resolved if s.is_archive]

    if len(archives) > 1:
        raise InvalidStageOrder(
            f"Only one archive stage can be composed, got {[s.name for s in archives]}",
            path=base
        )

    remote = is_remote(base)
    if transports and not remote:
        raise InvalidStageOrder(f"Network stage requires an http(s) or ftp URL, got '{base}'", path=base)
    if archives and remote and not transports:
        raise InvalidStageOrder(
            f"Archive stage {archives[0].name} needs a network stage beneath it to read '{base}'",
            path=base
        )
    if member and not archives:
        raise InvalidStageOrder(f"Archive member '{member}' given without an archive stage", path=base)
    if member and archives[0] is Stage.GZIP:
        raise InvalidStageOrder(f"GZIP stage wraps a single file and takes no member, got '{member}'", path=base)

    # Innermost (closest to transport) first
    path = base
    for stage in transports + archives:
        path = stage.prefix + path

    if member:
        path = path.rstrip("/") + "/" + member.lstrip("/")

    log.debug(f"Composed virtual path {path} from {base} with {[s.name for s in resolved]}")
    return path

def split(path: str) -> Tuple[List[Stage], str]:
    """
    Inverse of compose for paths without an archive member: returns the stages
    in application order (innermost first) and the base location.
    """
    path = str(path)
    outer_first = []
    while True:
        for stage in Stage:
            if path.startswith(stage.prefix):
                outer_first.append(stage)
                path = path[len(stage.prefix):]
                break
        else:
            break
    return list(reversed(outer_first)), path
