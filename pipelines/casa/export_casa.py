#!/usr/bin/env python3
"""
Export mean annual CASA NPP and NCEI rasters for a study region.

The region is either an Earth Engine FeatureCollection asset or a bbox.
Stress coefficients (Wstress, Tstress1, Tstress2) come from an Earth Engine
image or monthly image collection asset.

Examples:
    python export_casa.py --year 2022 --region-asset projects/p/assets/roi \\
        --stress-asset projects/p/assets/casa/stress_2022
    python export_casa.py --bbox 114.0 30.4 114.2 30.6 --stress-constant 1 --wait
"""

import argparse
import logging

import ee

from casa.compute import export_casa
from casa.compute.settings import JOIN_POLICIES, STRESS_BANDS
from casa.config import ASSET_ROOT, DEFAULT_JOIN, DEFAULT_YEAR, EXPORT_FOLDER, GEE_PROJECT


def _load_stress(args: argparse.Namespace):
    if args.stress_constant is not None:
        return ee.Image.constant([args.stress_constant] * len(STRESS_BANDS)).rename(STRESS_BANDS)
    info = ee.data.getAsset(args.stress_asset)
    if info.get("type") == "IMAGE_COLLECTION":
        return ee.ImageCollection(args.stress_asset)
    return ee.Image(args.stress_asset)


def main():
    parser = argparse.ArgumentParser(
        description="Export mean annual CASA NPP and NCEI rasters.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--year", type=int, default=DEFAULT_YEAR, help="Target year")
    region = parser.add_mutually_exclusive_group(required=True)
    region.add_argument("--region-asset", help="FeatureCollection asset with the study region")
    region.add_argument(
        "--bbox",
        type=float,
        nargs=4,
        metavar=("XMIN", "YMIN", "XMAX", "YMAX"),
        help="Study region bounding box in EPSG:4326",
    )
    stress = parser.add_mutually_exclusive_group(required=True)
    stress.add_argument("--stress-asset", help="Image/ImageCollection asset with stress bands")
    stress.add_argument(
        "--stress-constant",
        type=float,
        help="Use a constant value for all stress coefficients",
    )
    parser.add_argument("--join", choices=JOIN_POLICIES, default=DEFAULT_JOIN)
    parser.add_argument("--unmapped", choices=("keep", "mask"), default="keep")
    parser.add_argument("--destination", choices=("drive", "asset"), default="drive")
    parser.add_argument("--folder", default=EXPORT_FOLDER, help="Drive folder")
    parser.add_argument("--asset-root", default=ASSET_ROOT, help="Asset folder")
    parser.add_argument("--project", default=GEE_PROJECT, help="Google Cloud project")
    parser.add_argument("--wait", action="store_true", help="Wait for the export tasks")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logging.getLogger("ee").setLevel(logging.INFO)

    if args.destination == "asset" and not args.asset_root:
        parser.error("--asset-root (or gee.asset_root in config.yaml) is required for assets")

    try:
        ee.Initialize(project=args.project)
    except Exception:
        ee.Authenticate()
        ee.Initialize(project=args.project)

    region = ee.FeatureCollection(args.region_asset) if args.region_asset else args.bbox

    tasks = export_casa(
        region,
        args.year,
        _load_stress(args),
        join=args.join,
        unmapped=args.unmapped,
        destination=args.destination,
        folder=args.folder,
        asset_root=args.asset_root,
        wait=args.wait,
    )
    for band, task in tasks.items():
        print(f"{band}: task {task.id}")


if __name__ == "__main__":
    main()
