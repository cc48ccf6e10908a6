from devpack.cli import main

raise SystemExit(main())
