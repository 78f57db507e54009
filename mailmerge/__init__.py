"""Mail-merge engine package.

Turns one template plus a set of named data sources into one rendered
email per record of the primary source, and validates every result before
anything is sent.

Package Structure
-----------------
- `pipeline/`:
    One subpackage per stage: template parsing and source resolution,
    joins, rendering, validation and source loading, plus the batch
    runner that sequences them.
- `cli.py`: ``python -m mailmerge`` (check, validate, preview).
- `config.py`: configuration constants as UPPER_SNAKE_CASE.
- `exceptions.py`: the project exception hierarchy.

Examples
--------
>>> from mailmerge.pipeline.runner import run_batch
>>> from mailmerge.pipeline.sources import load_source
>>> from mailmerge.pipeline.template import parse_template
>>> template = parse_template("invite.mailmerge.yml")  # doctest: +SKIP
>>> result = run_batch(template, {"students": load_source("s.csv")})  # doctest: +SKIP
>>> result.report.is_valid  # doctest: +SKIP
True
"""

__version__ = "0.4.0"
