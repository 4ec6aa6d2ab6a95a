import sys

from ollama_cli.cli import main


sys.exit(main())
