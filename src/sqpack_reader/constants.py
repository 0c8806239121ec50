import re

CATEGORY_IDS: dict[str, int] = {
    "common": 0x00,
    "bgcommon": 0x01,
    "bg": 0x02,
    "cut": 0x03,
    "chara": 0x04,
    "shader": 0x05,
    "ui": 0x06,
    "sound": 0x07,
    "vfx": 0x08,
    "ui_script": 0x09,
    "exd": 0x0A,
    "game_script": 0x0B,
    "music": 0x0C,
    "_sqpack_test": 0x12,
    "_debug": 0x13,
}

BASE_REPO_DIR = "ffxiv"
PLATFORM = "win32"

EXPANSION_RE = re.compile(r"^ex([1-9])$")
PATCH_RE = re.compile(r"^([0-9a-f]{2})_")
REPO_FILE_RE = re.compile(
    r"^([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})\.win32\.(dat\d+|index|index2)$"
)

SQPACK_MAGIC = b"SqPack\x00\x00"
EXH_MAGIC = b"EXHF"
EXD_MAGIC = b"EXDF"

ROOT_EXL_PATH = "exd/root.exl"
