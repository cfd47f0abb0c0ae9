"""
打印参数 -> lp 命令参数

业务层的参数名只在这里和 CUPS 的 -o 选项对应，其余代码不关心具体的打印系统。
"""
from typing import List

from print_gateway.models import PrintOptions, MARGIN_SIDES

QUALITY_MAP = {
    'Draft': '3',
    'Normal': '4',
    'High': '5',
}
DEFAULT_QUALITY = QUALITY_MAP['Normal']

ORIENTATION_MAP = {
    'Portrait': '3',
    'Landscape': '4',
}

DUPLEX_MAP = {
    'Long-edge': 'two-sided-long-edge',
    'Short-edge': 'two-sided-short-edge',
}

POINTS_PER_INCH = 72


def _inches_to_points(value: float) -> int:
    return int(round(value * POINTS_PER_INCH))


def build_lp_args(printer_name: str, options: PrintOptions, file_path: str) -> List[str]:
    """
    生成 lp 参数列表

    顺序固定: 目标打印机在最前，文件路径在最后。份数只在大于1时输出，
    缩放只在不等于100时输出，页边距按 上/下/左/右 的顺序只输出正值，
    未设置双面时不输出 sides，逐份打印只在多份时输出。
    """
    args = ['-d', printer_name]

    if options.copies > 1:
        args += ['-n', str(options.copies)]

    color_value = 'Color' if options.color_mode == 'Color' else 'Gray'
    args += ['-o', f'ColorModel={color_value}']

    if options.paper_size:
        args += ['-o', f'media={options.paper_size}']

    if options.orientation:
        args += ['-o', f"orientation-requested={ORIENTATION_MAP.get(options.orientation, ORIENTATION_MAP['Portrait'])}"]

    if options.scaling and options.scaling != 100:
        args += ['-o', f'scaling={options.scaling}']

    args += ['-o', f'print-quality={QUALITY_MAP.get(options.quality, DEFAULT_QUALITY)}']

    margins = options.margins or {}
    for side in MARGIN_SIDES:
        value = margins.get(side) or 0
        if value > 0:
            args += ['-o', f'page-{side}={_inches_to_points(value)}']

    if options.duplex in DUPLEX_MAP:
        args += ['-o', f'sides={DUPLEX_MAP[options.duplex]}']

    if options.page_ranges:
        args += ['-o', f'page-ranges={options.page_ranges}']

    if options.collate and options.copies > 1:
        args += ['-o', 'collate=true']

    args.append(file_path)
    return args
