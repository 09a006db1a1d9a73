#!/usr/bin/env python3
"""
Simple CLI for the bodyscan package.

Usage:
    python -m bodyscan [options]

Options:
    --help, -h                  Show this help message
    --synthetic DIR             Generate a synthetic front/back scan in DIR and reconstruct it
    --reconstruct DIR FRONT BACK
                                Reconstruct from frames FRONT and BACK of dataset DIR
    --output-dir DIR            Output directory for meshes, textures and payload
                                (default: <dataset>/output)
    --config FILE               Reconstruction config YAML
    --log-file FILE             Also write the log to FILE
    --verbose                   Debug logging
"""

import logging
import sys
from pathlib import Path


def print_help():
    """Print usage information."""
    print(__doc__.strip())


def option_value(args, name):
    """Value following ``name`` in ``args``, or None."""
    if name in args:
        idx = args.index(name)
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


def run_reconstruction(dataset_dir: Path, front_id: str, back_id: str, output_dir: Path,
                       config: dict, log) -> int:
    from .capture.scan_frame import load_scan_frame
    from .capture.scan_store import ScanStore
    from .reconstruction.session import ReconstructionPipeline
    from .transport.scan_serializer import ScanPayload

    front, front_skeleton = load_scan_frame(dataset_dir, front_id)
    back, back_skeleton = load_scan_frame(dataset_dir, back_id)
    if front_skeleton is None or back_skeleton is None:
        log.write("Both frames need skeleton joints in their metadata", "error")
        return 1

    store = ScanStore()
    store.add(0.0, front, front_skeleton)
    store.add(1.0, back, back_skeleton)

    result = ReconstructionPipeline(config).reconstruct_from_store(store, 0.0, 1.0)
    print(result.summary())
    if not result.success:
        return 1

    written = result.body_scan.export(output_dir)
    payload_path = ScanPayload.from_body_scan(result.body_scan).save(output_dir / "body_scan.npz")
    log.write(f"Wrote {len(written)} mesh/texture files and {payload_path}")
    return 0


def main():
    if len(sys.argv) == 1 or '--help' in sys.argv or '-h' in sys.argv:
        print_help()
        return 0

    args = sys.argv[1:]

    from .utils.config import load_config
    from .utils.scan_logger import ScanLogger

    try:
        config = load_config(option_value(args, '--config'))
        level = logging.DEBUG if '--verbose' in args else config['logging'].get('level', 'INFO')
        log_file = option_value(args, '--log-file') or config['logging'].get('file')
        log = ScanLogger("bodyscan", log_file=log_file, level=level)

        output_dir = option_value(args, '--output-dir')

        # Synthetic scan
        if '--synthetic' in args:
            dataset_dir = option_value(args, '--synthetic')
            if dataset_dir is None:
                print("Error: --synthetic requires a directory")
                return 1
            dataset_dir = Path(dataset_dir)

            from .tests.create_test_data import create_test_dataset
            create_test_dataset(dataset_dir)
            output_dir = Path(output_dir) if output_dir else dataset_dir / "output"
            return run_reconstruction(dataset_dir, "front", "back", output_dir, config, log)

        # Reconstruct from a dataset
        elif '--reconstruct' in args:
            idx = args.index('--reconstruct')
            if idx + 3 >= len(args):
                print("Error: --reconstruct requires dataset_dir, front frame and back frame")
                return 1

            dataset_dir = Path(args[idx + 1])
            front_id = args[idx + 2]
            back_id = args[idx + 3]
            output_dir = Path(output_dir) if output_dir else dataset_dir / "output"
            return run_reconstruction(dataset_dir, front_id, back_id, output_dir, config, log)

        else:
            print("Error: No valid command specified")
            print("Use --help to see available options")
            return 1

    except Exception as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
