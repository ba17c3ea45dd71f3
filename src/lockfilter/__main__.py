from lockfilter.cli import main

raise SystemExit(main())
