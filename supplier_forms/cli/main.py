"""CLI entry point for the supplier form filler."""
import json
import sys
from pathlib import Path

from supplier_forms.domain.exceptions import FormFillerError
from supplier_forms.logging_config import setup_logging
from supplier_forms.services.inference import OpenAIInferenceClient
from supplier_forms.services.master_data import parse_master_data_file
from supplier_forms.services.pipeline import STATUS_AWAITING_INPUT, FillPipeline


def load_master_data(path: Path) -> dict:
    """Read master data from a .json object or a two-column .csv/.xlsx file."""
    if path.suffix.lower() == ".json":
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object of field names to values")
        return {str(key): str(value) for key, value in data.items()}
    return parse_master_data_file(path.name, path.read_bytes())


def ask_missing_values(pending) -> dict:
    print("\n=== Fields not found in master data ===")
    print("Enter a value for each field, or leave blank to skip.")
    supplied = {}
    for field in pending:
        value = input(f"  {field.label_guessed} [{field.target_cell}]: ").strip()
        if value:
            supplied[field.label_guessed] = value
    return supplied


def main(input_file: str, master_data_file: str, output_file: str = None):
    """Main CLI function."""
    setup_logging()

    input_path = Path(input_file)
    master_path = Path(master_data_file)
    for path in (input_path, master_path):
        if not path.exists():
            print(f"Error: Input file '{path}' not found.")
            sys.exit(1)

    if output_file is None:
        output_file = input_path.stem + "_filled" + input_path.suffix

    try:
        master_data = load_master_data(master_path)
        print(f"Loaded {len(master_data)} master data entries from {master_path}")

        pipeline = FillPipeline(OpenAIInferenceClient())

        print("\n=== Detecting and filling form fields ===")
        outcome = pipeline.start(input_path.read_bytes(), input_path.name, master_data)
        for directive in outcome.filled:
            print(f"  '{directive.label_guessed}' -> {directive.target_cell} = {directive.value}")

        if outcome.status == STATUS_AWAITING_INPUT:
            supplied = ask_missing_values(outcome.pending)
            if supplied:
                outcome = pipeline.complete(outcome.session, supplied)
            if outcome.pending:
                print(f"\n{len(outcome.pending)} field(s) left blank:")
                for field in outcome.pending:
                    print(f"  - {field.label_guessed} ({field.target_cell})")

        while True:
            feedback = input("\nDescribe a correction (or press Enter to finish): ").strip()
            if not feedback:
                break
            outcome = pipeline.correct(outcome.session, feedback)
            if not outcome.corrections:
                print("No changes could be determined from that request.")
            for directive in outcome.corrections:
                print(f"  {directive.target_cell} = {directive.value}")

        for warning in outcome.warnings:
            print(f"Warning: {warning}")

        Path(output_file).write_bytes(outcome.content)
        print(f"\n✓ Excel file saved as: {output_file}")

    except (FormFillerError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python -m supplier_forms.cli.main <form.xlsx> <master_data.csv|.xlsx|.json> [output_file]")
        sys.exit(1)

    output_file = sys.argv[3] if len(sys.argv) > 3 else None
    main(sys.argv[1], sys.argv[2], output_file)
