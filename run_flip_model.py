"""
Run the partnership flip model and write the Excel report.
"""

import argparse
import logging

from partnership_flip.runner import PartnershipFlipModel


def run_flip_model(inputs_path: str = 'example_inputs.json',
                   output_path: str = 'PartnershipFlipModel.xlsx'):
    """
    Run the model on a JSON inputs file and export the workbook.

    Args:
        inputs_path: Path to JSON inputs
        output_path: Path for output Excel file

    Returns:
        Results mapping of the run
    """
    model = PartnershipFlipModel.from_json(inputs_path)
    _, results = model.run()
    model.export_to_excel(output_path)

    return results


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the partnership flip model")
    parser.add_argument('inputs', nargs='?', default='example_inputs.json', help="JSON inputs file")
    parser.add_argument('-o', '--output', default='PartnershipFlipModel.xlsx', help="Excel output path")
    parser.add_argument('-v', '--verbose', action='store_true', help="Log solver iterations")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(message)s")

    run_flip_model(args.inputs, args.output)
