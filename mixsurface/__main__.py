"""Allow running mixsurface with ``python -m mixsurface``."""

from mixsurface.cli import main

raise SystemExit(main())
