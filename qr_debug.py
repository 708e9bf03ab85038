"""Finder detection debug output - saves intermediate results to disk."""

import os

import cv2
import numpy as np


def _save_img(debug_dir, name, data):
    """Save image to debug_dir."""
    path = os.path.join(debug_dir, name)
    cv2.imwrite(path, np.array(data))
    return path


def format_grid(grid):
    """Text dump of a 2-D grid, one row per line, %3d per cell."""
    grid = np.asarray(grid)
    return '\n'.join(' '.join('%3d' % int(v) for v in row) for row in grid)


def draw_detection(gray, result):
    """Candidate points (gray), TL-TR / TL-BL edges (green), clusters (red) and labels."""
    vis = cv2.cvtColor(np.array(gray, dtype=np.uint8), cv2.COLOR_GRAY2BGR)
    radius = max(2, min(gray.shape) // 100)
    est = result.estimate

    for p in result.points:
        cv2.circle(vis, (int(p.x), int(p.y)), 1, (160, 160, 160), -1)

    if est is not None:
        tl = (int(est.top_left.x), int(est.top_left.y))
        cv2.line(vis, tl, (int(est.top_right.x), int(est.top_right.y)), (0, 255, 0), 1)
        cv2.line(vis, tl, (int(est.bottom_left.x), int(est.bottom_left.y)), (0, 255, 0), 1)

    for i, c in enumerate(result.clusters):
        cx, cy = int(round(c.x)), int(round(c.y))
        cv2.circle(vis, (cx, cy), radius, (0, 0, 255), -1)
        cv2.putText(vis, f"{i}:{c.count}", (cx + radius + 2, cy - radius - 2),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, (0, 0, 255), 1)

    if est is not None:
        corners = [('TL', est.top_left), ('TR', est.top_right), ('BL', est.bottom_left)]
        for label, p in corners:
            cv2.putText(vis, label, (int(p.x) + 4, int(p.y) + 14),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 255), 1)
    return vis


def save_debug_all(debug_dir, context, result):
    """Save grayscale, binary mask, detection overlay and a summary to debug_dir."""
    if not debug_dir:
        return []
    os.makedirs(debug_dir, exist_ok=True)

    written = [
        _save_img(debug_dir, "1_gray.png", context.gray),
        _save_img(debug_dir, "2_binary.png", context.binary),
        _save_img(debug_dir, "3_detected.png", draw_detection(context.gray, result)),
    ]

    lines = [f"Image: {context.width}x{context.height}, channels {context.image.channels}",
             f"Candidate points: {len(result.points)}",
             f"Clusters: {len(result.clusters)}"]
    for i, c in enumerate(result.clusters):
        lines.append(f"  {i}: ({c.x:.1f}, {c.y:.1f}) x{c.count}")
    if result.estimate is not None:
        est = result.estimate
        lines.append(f"Version: {est.version}\nSize: {est.dimension}x{est.dimension}\n"
                     f"Module size: {est.module_size:.3f}")
    else:
        lines.append(f"Error: {type(result.error).__name__}: {result.error}")

    path = os.path.join(debug_dir, "4_info.txt")
    with open(path, 'w') as f:
        f.write('\n'.join(lines) + '\n')
    written.append(path)
    return written
