# Copyright 2024 SkyPilot Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Utility functions for the serverless module."""
import hashlib
import io
import os
import pathlib
import re
import zipfile
from typing import List, Sequence

from lambdeploy.serverless import exceptions

ROOT_PATH = '/'

# Timestamp stamped on every archive entry so identical inputs produce
# identical bytes. Zip cannot represent dates before 1980.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_ZIP_FILE_MODE = 0o644 << 16

_PATH_PARAM_RE = re.compile(r'\{[^/]*?\}')
_STATEMENT_ID_UNSAFE_RE = re.compile(r'[^A-Za-z0-9_-]+')
STATEMENT_ID_MAX_LEN = 100
# Schedule rule names are shorter than permission statement ids.
RULE_NAME_MAX_LEN = 64
_STATEMENT_ID_DIGEST_LEN = 8

# --- Resource paths ---


def split(path: str) -> List[str]:
    """Splits a URL path into its non-empty segments."""
    return [part for part in path.split('/') if part]


def normalize_path(path: str) -> str:
    """Enforces a leading slash and drops empty segments.

    >>> normalize_path('quote//{id}/')
    '/quote/{id}'
    """
    return ROOT_PATH + '/'.join(split(path))


def parent_of(path: str) -> str:
    """Returns the parent path by dropping the last segment.

    The root is its own parent.
    """
    parts = split(path)
    return ROOT_PATH + '/'.join(parts[:-1])


def last_segment(path: str) -> str:
    parts = split(path)
    if not parts:
        raise ValueError('The root path has no last segment.')
    return parts[-1]


def wildcard_path_params(path: str) -> str:
    """Replaces every '{param}' segment with '*'."""
    return _PATH_PARAM_RE.sub('*', path)


# --- Identifiers and ARNs ---


def sanitize_statement_id(statement_id: str,
                          max_len: int = STATEMENT_ID_MAX_LEN) -> str:
    """Restricts an id to [A-Za-z0-9_-] and at most `max_len` characters.

    An id that is already safe and short enough is returned unchanged.
    Otherwise a digest of the raw id is appended, so distinct inputs never
    collapse onto the same result; the readable prefix is truncated to make
    room for it: 'dev-Api-Fn-GET/a/b' becomes 'dev-Api-Fn-GET_a_b-<8 hex>'.
    """
    cleaned = _STATEMENT_ID_UNSAFE_RE.sub('_', statement_id).strip('_')
    if cleaned == statement_id and len(cleaned) <= max_len:
        return cleaned
    digest = hashlib.sha256(statement_id.encode('utf-8')).hexdigest()
    digest = digest[:_STATEMENT_ID_DIGEST_LEN]
    prefix = cleaned[:max_len - len(digest) - 1].rstrip('_-')
    return f'{prefix}-{digest}' if prefix else digest


def execute_api_arn(region: str, account_id: str, api_id: str, method: str,
                    path: str) -> str:
    """Source ARN granting an API's route, on any stage, the right to invoke."""
    return (f'arn:aws:execute-api:{region}:{account_id}:{api_id}/*/'
            f'{method}{wildcard_path_params(path)}')


def rule_arn(region: str, account_id: str, rule_name: str) -> str:
    return f'arn:aws:events:{region}:{account_id}:rule/{rule_name}'


def integration_uri(region: str, target_function_arn: str) -> str:
    return (f'arn:aws:apigateway:{region}:lambda:path/2015-03-31/functions/'
            f'{target_function_arn}/invocations')


def invoke_url(api_id: str, region: str, stage_name: str, path: str) -> str:
    return (f'https://{api_id}.execute-api.{region}.amazonaws.com/'
            f'{stage_name}{path}')


# --- Packaging ---


def handler_module(handler: str) -> str:
    """Returns the module part of a 'module.function' entry point."""
    module, sep, func = handler.rpartition('.')
    if not sep or not module or not func:
        raise exceptions.RegistrationError(
            f'Invalid handler {handler!r}: expected the '
            "'module.function' format.")
    return module


def check_entrypoint(files: Sequence[str], handler: str) -> None:
    """Checks that `handler` resolves to one of `files`.

    Raises:
        RegistrationError: If the handler is malformed or its module is not
            the stem of any declared file.
    """
    module = handler_module(handler)
    stems = {pathlib.Path(f).stem for f in files}
    if module not in stems:
        declared = ', '.join(os.path.basename(f) for f in files) or '<none>'
        raise exceptions.RegistrationError(
            f'Handler {handler!r} does not match any declared file '
            f'(declared: {declared}).')


def package_code(files: Sequence[str], handler: str) -> bytes:
    """Packages a function's source files into a zip archive.

    Files are stored flat by basename, in sorted order, with a fixed
    timestamp and mode, so the same file set always yields the same bytes.

    Args:
        files: Paths of the files to include.
        handler: The 'module.function' entry point that must resolve to one
            of the files.

    Returns:
        The archive contents.

    Raises:
        RegistrationError: If the entry point file is not among `files`, a
            file is missing, or two files share a basename.
    """
    check_entrypoint(files, handler)

    entries = {}
    for path in files:
        if not os.path.isfile(path):
            raise exceptions.RegistrationError(
                f'Declared file {path!r} does not exist.')
        arcname = os.path.basename(path)
        if arcname in entries:
            raise exceptions.RegistrationError(
                f'Declared files {entries[arcname]!r} and {path!r} share '
                f'the basename {arcname!r}.')
        entries[arcname] = path

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for arcname in sorted(entries):
            info = zipfile.ZipInfo(arcname, date_time=_ZIP_EPOCH)
            info.external_attr = _ZIP_FILE_MODE
            info.compress_type = zipfile.ZIP_DEFLATED
            with open(entries[arcname], 'rb') as f:
                archive.writestr(info, f.read())
    return buffer.getvalue()
