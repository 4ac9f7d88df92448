from solana_th_exporter.cli import main

raise SystemExit(main())
