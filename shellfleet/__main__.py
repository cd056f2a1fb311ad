from shellfleet.cli import main

raise SystemExit(main())
