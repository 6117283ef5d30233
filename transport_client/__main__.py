import sys

from transport_client.cli import main

sys.exit(main())
