"""
Upload dispatch - pick a decoder from the original file name.
"""
from pathlib import Path
from typing import Callable, Dict, Union

from fitdash.core.exceptions import UnsupportedFormatError
from fitdash.services.ingest.fit_decoder import decode_fit_file
from fitdash.services.ingest.gpx_decoder import decode_gpx_file
from fitdash.services.ingest.records import FileRecord

_DECODERS: Dict[str, Callable[[Union[str, Path]], FileRecord]] = {
    ".fit": decode_fit_file,
    ".gpx": decode_gpx_file,
}

SUPPORTED_EXTENSIONS = tuple(_DECODERS)


def decode_upload(path: Union[str, Path], original_name: str) -> FileRecord:
    """
    Decode an uploaded activity file.

    The temporary file at `path` is removed in every case, including
    unsupported formats.

    Args:
        path: Temporary location of the upload
        original_name: File name as provided by the client

    Returns:
        Decoded FileRecord

    Raises:
        UnsupportedFormatError: If the extension has no decoder
        DecodeError: If the file is malformed
    """
    decoder = _DECODERS.get(Path(original_name).suffix.lower())

    if decoder is None:
        Path(path).unlink(missing_ok=True)
        raise UnsupportedFormatError(
            f"Unsupported file format: {original_name} (expected {', '.join(SUPPORTED_EXTENSIONS)})"
        )

    record = decoder(path)
    record.file_name = original_name
    return record
