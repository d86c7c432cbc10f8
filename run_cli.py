"""Entry point for running the CLI."""
import sys
from supplier_forms.cli.main import main

if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python run_cli.py <form.xlsx> <master_data.csv|.xlsx|.json> [output_file]")
        sys.exit(1)

    output_file = sys.argv[3] if len(sys.argv) > 3 else None
    main(sys.argv[1], sys.argv[2], output_file)
