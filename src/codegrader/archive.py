# src/codegrader/archive.py
#
# Multi-submission archive parsing.
#
# An LMS bulk download arrives in one of several container shapes:
#   a) nested_archive               one .zip per student at the archive root
#   b) nested_archive_in_subfolder  one .zip per student, at any depth
#   c) directory_per_student        <student>/.../*.py
#   d) flat_files                   loose *.py files at the root
#
# Shapes are tried in that order; a detector only runs when every earlier
# detector found zero candidates. Unreadable entries never abort the pass: they
# are recorded in ParsedSubmissions.errors and parsing continues.

from __future__ import annotations

import io
import logging
import os
import posixpath
import zipfile
import zlib
from collections import OrderedDict
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .config import GraderConfig
from .exceptions import ExtractionError
from .identity import Rule, build_rules, parse_student_info
from .models import ParsedSubmissions, SubmissionBundle, SubmissionFile

logger = logging.getLogger(__name__)

ArchiveSource = Union[bytes, bytearray, str, "os.PathLike[str]", BinaryIO]

ARCHIVE_EXTENSION = ".zip"

# zipfile surfaces corrupt/encrypted/unsupported members through all of these.
_READ_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    NotImplementedError,
    RuntimeError,
    EOFError,
    OSError,
    UnicodeDecodeError,
    zlib.error,
)


@dataclass
class _Candidate:
    """One detected student grouping, before reading any content."""
    key: str                # name fed to the identity extractor
    paths: List[str]        # archive members belonging to this student
    nested: bool = False    # paths[0] is a per-student archive


# -----------------------------
# Helpers
# -----------------------------

def _open_archive(source: ArchiveSource) -> zipfile.ZipFile:
    if isinstance(source, (bytes, bytearray)):
        return zipfile.ZipFile(io.BytesIO(bytes(source)), "r")
    return zipfile.ZipFile(source, "r")


def _index(z: zipfile.ZipFile) -> "OrderedDict[str, zipfile.ZipInfo]":
    """File members keyed by '/'-normalized name, skipping directories and macOS resource forks."""
    out: "OrderedDict[str, zipfile.ZipInfo]" = OrderedDict()
    for info in z.infolist():
        name = info.filename.replace("\\", "/")
        if info.is_dir() or name.endswith("/"):
            continue
        if name.startswith("__MACOSX/") or "/__MACOSX/" in name:
            continue
        out[name] = info
    return out


def _strip_extension(filename: str) -> str:
    stem, _ = os.path.splitext(filename)
    return stem


def _is_code_file(name: str, extensions: Sequence[str]) -> bool:
    return name.lower().endswith(tuple(extensions))


def _is_archive(name: str) -> bool:
    return name.lower().endswith(ARCHIVE_EXTENSION)


def _read_bytes(z: zipfile.ZipFile, info: zipfile.ZipInfo, name: str) -> bytes:
    try:
        with z.open(info, "r") as fh:
            return fh.read()
    except _READ_ERRORS as e:
        raise ExtractionError(name, e) from e


def _read_text(z: zipfile.ZipFile, info: zipfile.ZipInfo, name: str) -> str:
    data = _read_bytes(z, info, name)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionError(name, e) from e


# -----------------------------
# Shape detectors (pure: member names -> candidates)
# -----------------------------

def detect_nested_archives(names: Sequence[str], extensions: Sequence[str]) -> List[_Candidate]:
    return [
        _Candidate(key=_strip_extension(n), paths=[n], nested=True)
        for n in names
        if _is_archive(n) and "/" not in n
    ]


def detect_nested_archives_any_depth(names: Sequence[str], extensions: Sequence[str]) -> List[_Candidate]:
    return [
        _Candidate(key=_strip_extension(posixpath.basename(n)), paths=[n], nested=True)
        for n in names
        if _is_archive(n)
    ]


def detect_student_directories(names: Sequence[str], extensions: Sequence[str]) -> List[_Candidate]:
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for n in names:
        if "/" not in n or not _is_code_file(n, extensions):
            continue
        first = n.split("/", 1)[0]
        if not first:
            continue
        groups.setdefault(first, []).append(n)
    return [_Candidate(key=k, paths=v) for k, v in groups.items()]


def _flat_student_key(filename: str) -> str:
    # Everything after the email token (attempt number, original file name)
    # varies per file; one student's files share the prefix up to the email.
    stem = _strip_extension(filename)
    parts = stem.split("_")
    idx = next((i for i, p in enumerate(parts) if "@" in p), None)
    if idx is None:
        return stem
    return "_".join(parts[: idx + 1])


def detect_flat_files(names: Sequence[str], extensions: Sequence[str]) -> List[_Candidate]:
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for n in names:
        if "/" in n or not _is_code_file(n, extensions):
            continue
        groups.setdefault(_flat_student_key(n), []).append(n)
    return [_Candidate(key=k, paths=v) for k, v in groups.items()]


Detector = Callable[[Sequence[str], Sequence[str]], List[_Candidate]]

SHAPE_DETECTORS: Tuple[Tuple[str, Detector], ...] = (
    ("nested_archive", detect_nested_archives),
    ("nested_archive_in_subfolder", detect_nested_archives_any_depth),
    ("directory_per_student", detect_student_directories),
    ("flat_files", detect_flat_files),
)


def detect_shape(
    names: Sequence[str], extensions: Sequence[str]
) -> Tuple[Optional[str], List[_Candidate]]:
    for shape, detector in SHAPE_DETECTORS:
        candidates = detector(names, extensions)
        if candidates:
            return shape, candidates
    return None, []


# -----------------------------
# Extraction
# -----------------------------

def _extract_nested(
    z: zipfile.ZipFile,
    members: Dict[str, zipfile.ZipInfo],
    cand: _Candidate,
    email: str,
    extensions: Sequence[str],
    errors: List[str],
) -> List[SubmissionFile]:
    member = cand.paths[0]
    payload = _read_bytes(z, members[member], member)
    try:
        inner = zipfile.ZipFile(io.BytesIO(payload), "r")
    except _READ_ERRORS as e:
        raise ExtractionError(member, e) from e

    files: List[SubmissionFile] = []
    with inner:
        for name, info in _index(inner).items():
            if not _is_code_file(name, extensions):
                continue
            try:
                files.append(SubmissionFile(name=name, content=_read_text(inner, info, name)))
            except ExtractionError as e:
                msg = f"Failed to read {name} for {email}: {e.cause}"
                logger.warning(msg)
                errors.append(msg)
    return files


def _extract_members(
    z: zipfile.ZipFile,
    members: Dict[str, zipfile.ZipInfo],
    cand: _Candidate,
    errors: List[str],
) -> List[SubmissionFile]:
    files: List[SubmissionFile] = []
    for path in cand.paths:
        try:
            content = _read_text(z, members[path], path)
        except ExtractionError as e:
            logger.warning(str(e))
            errors.append(str(e))
            continue
        files.append(SubmissionFile(name=posixpath.basename(path), content=content))
    return files


def parse_submission_archive(
    source: ArchiveSource,
    *,
    config: Optional[GraderConfig] = None,
    rules: Optional[Sequence[Rule]] = None,
) -> ParsedSubmissions:
    """
    Parse a multi-submission archive into one SubmissionBundle per student.

    Never raises for content problems: a top-level archive that cannot be
    opened produces an empty result carrying one error.
    """
    cfg = config or GraderConfig()
    extensions = cfg.code_extensions
    if rules is None:
        rules = build_rules(known_domains=cfg.known_domains, fallback_domain=cfg.fallback_domain)

    result = ParsedSubmissions()

    try:
        z = _open_archive(source)
    except _READ_ERRORS as e:
        msg = f"Failed to parse main ZIP file: {e}"
        logger.error(msg)
        result.errors.append(msg)
        return result

    with z:
        members = _index(z)
        names = list(members.keys())
        logger.debug("Archive members: %s", names)

        shape, candidates = detect_shape(names, extensions)
        result.shape = shape
        result.total_students = len(candidates)

        if shape is None:
            result.errors.append("No student submissions found in archive")
            logger.warning("No student submissions found in archive (%d members)", len(names))
            return result

        logger.info("Detected %s layout with %d student(s)", shape, len(candidates))

        for cand in candidates:
            identity = parse_student_info(cand.key, rules)
            if identity is None:
                where = "directory: " if shape == "directory_per_student" else ""
                msg = f"Could not parse student info from {where}{cand.key}"
                logger.warning(msg)
                result.errors.append(msg)
                continue

            if cand.nested:
                try:
                    files = _extract_nested(z, members, cand, identity.email, extensions, result.errors)
                except ExtractionError as e:
                    msg = f"Failed to process {e.path}: {e.cause}"
                    logger.warning(msg)
                    result.errors.append(msg)
                    continue
                if not files:
                    msg = f"No code files found for {identity.email}"
                    logger.warning(msg)
                    result.errors.append(msg)
                    continue
            else:
                files = _extract_members(z, members, cand, result.errors)
                if not files:
                    continue

            result.students.append(SubmissionBundle.from_identity(identity, files))
            result.successful_extractions += 1

    logger.info(
        "Parsed %d/%d student submission(s), %d error(s)",
        result.successful_extractions,
        result.total_students,
        len(result.errors),
    )
    return result
