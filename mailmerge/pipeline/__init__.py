"""Pipeline stages.

Data flows template -> descriptors -> contexts -> rendered instances ->
validation report. Each stage is a pure function of its full input; only
the validator touches the filesystem, and only to check existence.
Import stage APIs from their subpackages (``mailmerge.pipeline.join`` and
so on) or use :mod:`mailmerge.pipeline.runner` for a whole batch.
"""
