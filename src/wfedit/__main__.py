from wfedit.cli import main

raise SystemExit(main())
