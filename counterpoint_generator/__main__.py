"""Entry point wrapper for ``python -m counterpoint_generator``.

Execution is forwarded to :func:`counterpoint_generator.main` so the
behaviour is identical whether the user runs ``python -m
counterpoint_generator`` or the installed ``counterpoint-generator`` console
script.

Example
-------
::

    python -m counterpoint_generator --species 1 --cantus D4,F4,E4,D4
"""

from . import main

if __name__ == "__main__":
    main()
