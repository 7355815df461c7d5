from rv.cli import main

raise SystemExit(main())
