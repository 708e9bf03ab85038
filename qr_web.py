#!/usr/bin/env python3
"""
QR Finder Pattern Web App
Run: python3 qr_web.py
Visit: http://<your-ip>:8080 on your phone
"""

import socket

from flask import Flask, jsonify, render_template_string, request

from qr_decode import DetectorConfig, timed_detect
from qr_errors import ImageLoadError
from qr_image import decode_image_bytes

HTML = '''
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0, maximum-scale=1.0, user-scalable=no">
    <title>QR Finder Patterns</title>
    <style>
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: linear-gradient(135deg, #1a1a2e 0%, #16213e 100%);
            min-height: 100vh;
            padding: 20px;
            color: #fff;
        }
        .container { max-width: 500px; margin: 0 auto; }
        h1 { text-align: center; margin-bottom: 20px; font-size: 24px; }
        .upload-area {
            background: rgba(255,255,255,0.1);
            border: 2px dashed rgba(255,255,255,0.3);
            border-radius: 16px;
            padding: 30px;
            text-align: center;
            margin-bottom: 20px;
        }
        .btn {
            display: inline-block;
            padding: 14px 28px;
            margin: 8px;
            border-radius: 12px;
            font-size: 16px;
            font-weight: 600;
            cursor: pointer;
            color: white;
            background: linear-gradient(135deg, #2196F3, #1976D2);
        }
        input[type="file"] { display: none; }
        #preview { max-width: 100%; max-height: 300px; border-radius: 12px; margin: 15px 0; display: none; }
        #result { border-radius: 12px; padding: 20px; display: none; }
        #result.success { background: rgba(76, 175, 80, 0.2); border: 1px solid #4CAF50; }
        #result.error { background: rgba(244, 67, 54, 0.2); border: 1px solid #f44336; }
        #result-text { font-family: monospace; font-size: 14px; line-height: 1.6; white-space: pre; }
    </style>
</head>
<body>
    <div class="container">
        <h1>QR Finder Patterns</h1>
        <div class="upload-area">
            <label class="btn">
                Select image
                <input type="file" id="imageInput" accept="image/*">
            </label>
            <img id="preview" alt="Preview">
        </div>
        <div id="result"><div id="result-text"></div></div>
    </div>

    <script>
        const preview = document.getElementById('preview');
        const result = document.getElementById('result');
        const resultText = document.getElementById('result-text');

        document.getElementById('imageInput').onchange = (e) => {
            if (!e.target.files.length) return;
            const file = e.target.files[0];
            preview.src = URL.createObjectURL(file);
            preview.style.display = 'block';

            const formData = new FormData();
            formData.append('image', file);
            fetch('/detect', { method: 'POST', body: formData })
                .then(r => r.json())
                .then(data => {
                    result.style.display = 'block';
                    if (data.success) {
                        const o = data.orientation;
                        result.className = 'success';
                        resultText.textContent =
                            'TL: ' + o.top_left.map(v => v.toFixed(1)).join(', ') + '\\n' +
                            'TR: ' + o.top_right.map(v => v.toFixed(1)).join(', ') + '\\n' +
                            'BL: ' + o.bottom_left.map(v => v.toFixed(1)).join(', ') + '\\n' +
                            'Version ' + o.version + ' (' + o.dimension + 'x' + o.dimension + '), ' +
                            'module ' + o.module_size.toFixed(2) + 'px\\n' +
                            data.elapsed_ms.toFixed(1) + ' ms';
                    } else {
                        result.className = 'error';
                        resultText.textContent = 'Error: ' + data.error;
                    }
                })
                .catch(err => {
                    result.style.display = 'block';
                    result.className = 'error';
                    resultText.textContent = 'Network error: ' + err.message;
                });
        };
    </script>
</body>
</html>
'''


def create_app(config=None, timeout=None):
    """`config` is a DetectorConfig, `timeout` a per-request limit in seconds."""
    app = Flask(__name__)
    detector_config = config or DetectorConfig()

    @app.route('/')
    def index():
        return render_template_string(HTML)

    @app.route('/detect', methods=['POST'])
    def detect():
        if 'image' not in request.files:
            return jsonify({'success': False, 'error': 'No image uploaded'}), 400

        file = request.files['image']
        if file.filename == '':
            return jsonify({'success': False, 'error': 'No file selected'}), 400

        try:
            image = decode_image_bytes(file.read())
        except ImageLoadError as e:
            print(f"[DETECT] Error: {e}", flush=True)
            return jsonify({'success': False, 'error': str(e), 'kind': type(e).__name__}), 400

        result, elapsed_ms = timed_detect(image, config=detector_config, timeout=timeout)
        print(f"[DETECT] {image.width}x{image.height}: {len(result.points)} points, "
              f"{len(result.clusters)} clusters, {elapsed_ms:.1f} ms", flush=True)

        body = {
            'success': result.ok,
            'points': len(result.points),
            'clusters': [{'x': c.x, 'y': c.y, 'count': c.count} for c in result.clusters],
            'elapsed_ms': elapsed_ms,
        }
        if result.ok:
            body['orientation'] = result.estimate.to_dict()
        else:
            body['error'] = str(result.error)
            body['kind'] = type(result.error).__name__
        return jsonify(body)

    return app


def _local_ip():
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(('8.8.8.8', 80))
        return s.getsockname()[0]
    except OSError:
        return '127.0.0.1'
    finally:
        s.close()


if __name__ == '__main__':
    ip = _local_ip()
    port = 8080
    print("=" * 50)
    print("QR Finder Pattern Web App")
    print("=" * 50)
    print(f"\nVisit on your phone: http://{ip}:{port}")
    print(f"Or on this computer: http://localhost:{port}")
    print("\nPress Ctrl+C to stop\n")

    create_app().run(host='0.0.0.0', port=port, debug=False)
