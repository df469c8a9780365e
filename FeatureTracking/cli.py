"""
Command line interface for the feature tracking front-end.

Usage:
    feature-tracking --image-dir ./data/KITTI/2011_09_26/image_00/data \\
        --prefix 000000 --start 0 --end 9 --detector FAST --descriptor BRIEF

    feature-tracking --image-dir ./images --pattern "*.jpg" --preset accurate --csv frames.csv

    feature-tracking --image-dir ./images --benchmark --csv benchmark.csv
"""

import argparse
import sys
from typing import List, Optional

from .benchmarking import benchmark_combinations
from .config import (
    create_config_from_preset,
    family_for,
    get_available_presets,
    load_config,
    merge_configs,
    PipelineConfig,
)
from .core_data_structures import (
    DescriptorFamily,
    DescriptorType,
    DetectorType,
    MatcherType,
    SelectorType,
)
from .exceptions import ConfigurationError, ImageLoadError
from .image_manager import ImageSequence
from .logger import configure_root_logger, get_logger
from .pipeline import FeatureTrackingPipeline

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feature-tracking",
        description="Detect, describe and match keypoints across an image sequence"
    )

    source = parser.add_argument_group("image source")
    source.add_argument("--image-dir", required=True, help="Folder holding the image sequence")
    source.add_argument("--prefix", help="File name prefix before the zero-padded index")
    source.add_argument("--start", type=int, default=0, help="First image index (default: 0)")
    source.add_argument("--end", type=int, help="Last image index, inclusive")
    source.add_argument("--fill-width", type=int, default=4,
                        help="Digits the index is padded to (default: 4)")
    source.add_argument("--file-type", default=".png", help="File extension (default: .png)")
    source.add_argument("--pattern", help="Glob pattern selecting files in --image-dir")

    strategy = parser.add_argument_group("strategies")
    strategy.add_argument("--detector", choices=[t.value for t in DetectorType])
    strategy.add_argument("--descriptor", choices=[t.value for t in DescriptorType])
    strategy.add_argument("--family", choices=[f.value for f in DescriptorFamily],
                          help="Descriptor family (default: derived from --descriptor)")
    strategy.add_argument("--matcher", choices=[m.value for m in MatcherType])
    strategy.add_argument("--selector", choices=[s.value for s in SelectorType])
    strategy.add_argument("--window", type=int, help="Frame window capacity")
    strategy.add_argument("--roi", type=float, nargs=4, metavar=("X", "Y", "W", "H"),
                          help="Keep only keypoints inside this rectangle")
    strategy.add_argument("--max-keypoints", type=int, help="Keep only the strongest N keypoints")

    run = parser.add_argument_group("run")
    run.add_argument("--preset", default="default", choices=get_available_presets())
    run.add_argument("--config", help="JSON configuration file applied on top of the preset")
    run.add_argument("--visualize", action="store_true", help="Show keypoints and matches per frame")
    run.add_argument("--benchmark", action="store_true",
                     help="Run every detector/descriptor combination")
    run.add_argument("--csv", help="Write per-frame metrics (or benchmark table) to this CSV file")
    run.add_argument("--log-level", default="INFO",
                     choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    run.add_argument("--log-file", help="Also write the log to this file")

    return parser


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Preset, then --config file, then individual command line options"""
    config = create_config_from_preset(args.preset)
    if args.config:
        config = merge_configs(config, load_config(args.config))

    overrides = {
        'detector': args.detector,
        'descriptor': args.descriptor,
        'descriptor_family': args.family,
        'matcher': args.matcher,
        'selector': args.selector,
        'window_size': args.window,
        'roi': args.roi,
        'max_keypoints': args.max_keypoints,
    }
    if args.descriptor and not args.family:
        overrides['descriptor_family'] = family_for(args.descriptor).value
    if args.visualize:
        overrides['visualize'] = True

    config.update({key: value for key, value in overrides.items() if value is not None})
    return PipelineConfig.from_dict(config)


def build_sequence(args: argparse.Namespace) -> ImageSequence:
    if args.prefix is not None:
        if args.end is None:
            raise ConfigurationError("--prefix needs --end (last image index)")
        return ImageSequence.from_index_range(args.image_dir, args.prefix, args.start, args.end,
                                              fill_width=args.fill_width,
                                              file_type=args.file_type)

    pattern = args.pattern or f"*{args.file_type}"
    return ImageSequence.from_folder(args.image_dir, pattern)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_root_logger(level=args.log_level, log_file=args.log_file)

    try:
        config = build_config(args)
        images = build_sequence(args)
        if len(images) == 0:
            raise ImageLoadError(f"No images found in {args.image_dir}")

        if args.benchmark:
            table = benchmark_combinations(images, base_config=config)
            print(table.to_string(index=False))
            if args.csv:
                table.to_csv(args.csv, index=False)
                logger.info(f"Benchmark table saved to: {args.csv}")
            return 0

        report = FeatureTrackingPipeline(config).run(images)
        print(report.format_report())
        if args.csv:
            report.save_csv(args.csv)

    except (ConfigurationError, ImageLoadError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
