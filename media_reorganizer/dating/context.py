import re
from pathlib import PurePosixPath

# Leading date-like tokens, most specific first
_LEADING_TOKENS = [
    re.compile(r'^\d{4}[-_]\d{2}[-_]\d{2}', re.ASCII),   # YYYY-MM-DD / YYYY_MM_DD
    re.compile(r'^\d{8}', re.ASCII),                     # YYYYMMDD
    re.compile(r'^\d{6}', re.ASCII),                     # YYMMDD
    re.compile(r'^\d{4}[-_]', re.ASCII),                 # YYYY_ / YYYY-
    re.compile(r'^\d{4}\s+', re.ASCII),                  # YYYY followed by space
]
_DECADE_RANGE = re.compile(r'\d{4}-\d{4}', re.ASCII)
_BEFORE_AFTER = re.compile(r'(?:^|\s+)and\s+(?:before|after)$', re.ASCII)
_NON_WORD = re.compile(r'[^A-Za-z0-9_]')
_UNDERSCORES = re.compile(r'_+')


def clean_directory_name(name: str) -> str:
    """
    Strips dates, decade ranges and 'and before/after' phrases from one
    directory name and reduces what is left to [A-Za-z0-9_].
    """
    # Ranges go first, otherwise 'YYYY-' below would eat half of one
    name = _DECADE_RANGE.sub('', name).strip('_- ')
    for pattern in _LEADING_TOKENS:
        name = pattern.sub('', name)
    name = name.strip('_- ')
    name = _BEFORE_AFTER.sub('', name)

    name = name.strip('_- ').replace(' ', '_')
    name = _NON_WORD.sub('_', name)
    name = _UNDERSCORES.sub('_', name)
    return name.strip('_')


class DirectoryContextExtractor:
    """
    Builds a label from the directories between the source root and a file,
    e.g. '/photos/1949 and before/Dyson-Williams/img.jpg' -> 'Dyson_Williams'.
    Prepended to file descriptions so same-named files from different folders
    stay distinguishable.
    """

    def extract(self, full_path: str, source_root: str) -> str:
        root = source_root.rstrip('/')
        path = full_path.rstrip('/')

        rel = path
        if root and path.startswith(root + '/'):
            rel = path[len(root) + 1:]

        parent = str(PurePosixPath(rel).parent)
        if parent in ('.', '', '/'):
            return ""

        parts = [clean_directory_name(p) for p in parent.split('/') if p not in ('', '.')]
        return '_'.join(p for p in parts if p)
