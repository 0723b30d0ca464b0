"""
Composition Layer - Pure assembly of generated entities

Submodules:
    assembler.py → assemble() and AssembledRecord
"""

from medical_record_generation.composition.assembler import AssembledRecord, assemble

__all__ = ["AssembledRecord", "assemble"]
