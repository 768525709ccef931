"""Builtin TBASIC libraries, registered into the global context in this order."""

from tblib import arrays, mathlib, runtime, statements, strings, userio

STANDARD_LIBRARIES = [statements, mathlib, runtime, strings, arrays, userio]
