from sqpack_reader.archive.dat import (
    DataFileReader,
    EmptyFile,
    FileContainer,
    FileKind,
    ModelFile,
    StandardFile,
    TextureFile,
    TextureHeader,
)
from sqpack_reader.archive.hashing import PathHash, hash_path, hash_segment
from sqpack_reader.archive.index import FileLocator, IndexEntry, IndexKind, IndexStore, load_index
from sqpack_reader.archive.paths import ArchivePath, PackId
from sqpack_reader.archive.repository import Repository

__all__ = [
    "ArchivePath",
    "DataFileReader",
    "EmptyFile",
    "FileContainer",
    "FileKind",
    "FileLocator",
    "IndexEntry",
    "IndexKind",
    "IndexStore",
    "ModelFile",
    "PackId",
    "PathHash",
    "Repository",
    "StandardFile",
    "TextureFile",
    "TextureHeader",
    "hash_path",
    "hash_segment",
    "load_index",
]
