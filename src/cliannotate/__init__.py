"""cliannotate - semantic annotation of command lines in documentation

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Fail open per line, fail fast at setup

cliannotate asks an external "description oracle" (a CLI binary able to
describe its own grammar) what each word of a documented command line means,
then splices colored, tooltipped and optionally hyperlinked markup back into
the original text.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
