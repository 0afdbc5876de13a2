"""
Reference sequence providers.

The refinement only needs two capabilities from a genome: fetching the
bases of a window and looking up a chromosome length. ``InMemoryGenome``
serves synthetic or small genomes, ``FastaGenome`` wraps an indexed FASTA
through pysam.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import settings
from .exceptions import SequenceFetchError

logger = logging.getLogger(__name__)


class SequenceProvider:
    """Random-access sequence source (0-based, half-open windows)."""

    def fetch(self, chrom: str, start: int, end: int) -> str:
        raise NotImplementedError

    def chrom_length(self, chrom: str) -> Optional[int]:
        """Length of ``chrom``, or None if the genome does not contain it."""
        raise NotImplementedError

    def __contains__(self, chrom: str) -> bool:
        return self.chrom_length(chrom) is not None


class InMemoryGenome(SequenceProvider):
    """Genome held as a dict of chromosome name to sequence string."""

    def __init__(self, sequences: Dict[str, str]):
        self.sequences = {str(k): str(v) for k, v in sequences.items()}

    @classmethod
    def from_fasta(cls, fasta_path: Union[str, Path]) -> "InMemoryGenome":
        """Load every record of a (small) FASTA file into memory."""
        from Bio import SeqIO

        records = SeqIO.to_dict(SeqIO.parse(str(fasta_path), "fasta"))
        logger.info(f"Loaded {len(records)} sequences from {fasta_path}")
        return cls({name: str(rec.seq) for name, rec in records.items()})

    def fetch(self, chrom: str, start: int, end: int) -> str:
        seq = self.sequences.get(chrom)
        if seq is None:
            raise SequenceFetchError(f"Chromosome '{chrom}' not in genome")
        if start < 0 or end > len(seq):
            raise SequenceFetchError(
                f"Window {chrom}:{start}-{end} outside chromosome of length {len(seq)}"
            )
        return seq[start:end]

    def chrom_length(self, chrom: str) -> Optional[int]:
        seq = self.sequences.get(chrom)
        return None if seq is None else len(seq)


class FastaGenome(SequenceProvider):
    """Indexed FASTA (``.fai``) accessed through ``pysam.FastaFile``.

    One file handle is shared by all threads; fetches are serialized with a
    lock because ``pysam.FastaFile`` is not thread-safe.
    """

    def __init__(self, fasta_path: Union[str, Path]):
        import pysam

        self.fasta_path = Path(fasta_path)
        if not self.fasta_path.exists():
            raise SequenceFetchError(f"FASTA file not found: {self.fasta_path}")
        self._fasta = pysam.FastaFile(str(self.fasta_path))
        self._lengths = dict(zip(self._fasta.references, self._fasta.lengths))
        self._lock = threading.Lock()

    def fetch(self, chrom: str, start: int, end: int) -> str:
        length = self._lengths.get(chrom)
        if length is None:
            raise SequenceFetchError(f"Chromosome '{chrom}' not in {self.fasta_path.name}")
        if start < 0 or end > length:
            raise SequenceFetchError(
                f"Window {chrom}:{start}-{end} outside chromosome of length {length}"
            )
        with self._lock:
            return self._fasta.fetch(chrom, start, end)

    def chrom_length(self, chrom: str) -> Optional[int]:
        return self._lengths.get(chrom)

    @property
    def closed(self) -> bool:
        return self._fasta.closed

    def close(self):
        with self._lock:
            if not self._fasta.closed:
                self._fasta.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def resolve_sequence_provider(genome) -> SequenceProvider:
    """Turn a provider, FASTA path or genome identifier into a provider.

    Genome identifiers (e.g. ``hg19``) resolve to
    ``<references_dir>/<genome>/<genome>.fa``.
    """
    if isinstance(genome, SequenceProvider):
        return genome
    if isinstance(genome, dict):
        return InMemoryGenome(genome)
    if isinstance(genome, (str, Path)):
        path = Path(genome)
        if path.suffix in (".fa", ".fasta", ".fna", ".gz") or path.exists():
            return FastaGenome(path)
        reference = settings.get_reference_path(str(genome))
        if reference.exists():
            return FastaGenome(reference)
        raise SequenceFetchError(
            f"Unknown genome '{genome}': no FASTA at {reference}"
        )
    raise SequenceFetchError(f"Cannot use {type(genome).__name__} as a sequence provider")
