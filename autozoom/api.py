import io
import json
import logging

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from .capture import list_sources, partition_sources
from .config import CameraConfig, Settings
from .encoder import EXTENSIONS
from .errors import AutoZoomError, CaptureError, SessionError, TranscodeError
from .input_source import ActivityObserver
from .session import RecordingSession
from .storage import ask_save_path, save_video
from .transcoder import TranscodeOptions, transcode

logger = logging.getLogger(__name__)


def _fail(message, status):
    return jsonify({'success': False, 'message': message}), status


def create_app(settings=None, session=None, source_lister=list_sources, save_path_chooser=ask_save_path):
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    CORS(app, origins=settings.cors_origins)

    if session is None:
        session = RecordingSession(
            CameraConfig(),
            observer_factory=ActivityObserver if settings.global_input else None,
        )
    # the video the editor is working on: the raw recording, then each transcode result
    current = {'data': None, 'mime_type': None}

    # a track that ends on its own stops the session without /stop-recording
    previous_on_stopped = session.on_stopped

    def keep_recording(data):
        current['data'], current['mime_type'] = data, session.mime_type
        if previous_on_stopped:
            previous_on_stopped(data)

    session.on_stopped = keep_recording

    app.config['SESSION'] = session
    app.config['CURRENT_VIDEO'] = current

    @app.errorhandler(SessionError)
    def handle_session_error(e):
        return _fail(str(e), 400)

    @app.errorhandler(CaptureError)
    def handle_capture_error(e):
        return _fail(f'Failed to start recording: {e}', 500)

    @app.errorhandler(TranscodeError)
    def handle_transcode_error(e):
        return _fail(f'Processing failed: {e}', 500)

    @app.route('/sources', methods=['GET'])
    def get_sources():
        """List capturable screens and windows"""
        screens, windows = partition_sources(source_lister())
        return jsonify({
            'screens': [s.to_dict() for s in screens],
            'windows': [w.to_dict() for w in windows],
        })

    @app.route('/start-recording', methods=['POST'])
    def start_recording():
        """Start recording a source"""
        body = request.get_json(silent=True) or {}
        source_id = body.get('source_id')
        if not source_id:
            return _fail('source_id is required', 400)
        session.start(source_id, countdown=int(body.get('countdown', 0)))
        return jsonify({
            'success': True,
            'message': 'Recording started successfully',
            'status': 'recording',
        })

    @app.route('/pause-recording', methods=['POST'])
    def pause_recording():
        session.pause()
        return jsonify({'success': True, 'status': 'paused'})

    @app.route('/resume-recording', methods=['POST'])
    def resume_recording():
        session.resume()
        return jsonify({'success': True, 'status': 'recording'})

    @app.route('/stop-recording', methods=['POST'])
    def stop_recording():
        """Stop recording and keep the encoded video for /video, /transcode and /save"""
        data = session.stop()
        return jsonify({
            'success': True,
            'message': 'Recording stopped successfully',
            'status': 'completed',
            'size': len(data),
            'mime_type': session.mime_type,
        })

    @app.route('/recording-status', methods=['GET'])
    def get_recording_status():
        status = session.status()
        status['video'] = current['data'] is not None
        return jsonify(status)

    @app.route('/events/pointer', methods=['POST'])
    def pointer_event():
        body = request.get_json(silent=True) or {}
        try:
            x, y = float(body['x']), float(body['y'])
        except (KeyError, TypeError, ValueError):
            return _fail('x and y are required numbers', 400)
        session.push_pointer(x, y)
        return jsonify({'success': True})

    @app.route('/events/click', methods=['POST'])
    def click_event():
        session.push_click()
        return jsonify({'success': True})

    @app.route('/events/key', methods=['POST'])
    def key_event():
        session.push_key()
        return jsonify({'success': True})

    @app.route('/video', methods=['GET'])
    def get_video():
        """Serve the current video"""
        if current['data'] is None:
            return _fail('Video not found', 404)
        mime = current['mime_type'] or 'application/octet-stream'
        return send_file(
            io.BytesIO(current['data']),
            mimetype=mime,
            as_attachment=False,
            download_name='autozoom_recording' + EXTENSIONS.get(mime, ''),
        )

    @app.route('/transcode', methods=['POST'])
    def transcode_video():
        """Trim/crop/blur an uploaded video, or the current one when nothing is uploaded"""
        upload = request.files.get('video')
        if upload is not None:
            data = upload.read()
            raw_options = request.form.get('options', '{}')
            try:
                raw_options = json.loads(raw_options)
            except ValueError:
                return _fail('options must be JSON', 400)
            in_mime = upload.mimetype
        else:
            data = current['data']
            raw_options = request.get_json(silent=True) or {}
            in_mime = current['mime_type']
        if not data:
            return _fail('No video to process', 400)
        try:
            options = TranscodeOptions.from_dict(raw_options)
        except (KeyError, TypeError, ValueError) as e:
            return _fail(f'Invalid options: {e}', 400)

        result = transcode(data, options, ffmpeg=settings.ffmpeg,
                           input_suffix=EXTENSIONS.get(in_mime, '.webm'))
        current['data'], current['mime_type'] = result, 'video/mp4'
        return send_file(io.BytesIO(result), mimetype='video/mp4',
                         download_name='autozoom_processed.mp4')

    @app.route('/save', methods=['POST'])
    def save():
        """Save the current video where the user chooses"""
        if current['data'] is None:
            return _fail('Video not found', 404)
        ext = EXTENSIONS.get(current['mime_type'], '.mp4')
        path = save_video(current['data'], chooser=save_path_chooser, ext=ext)
        if path is None:
            return jsonify({'success': False, 'message': 'Save cancelled'})
        return jsonify({'success': True, 'path': path})

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'message': 'AutoZoom API is running'
        })

    @app.errorhandler(AutoZoomError)
    def handle_error(e):
        return _fail(str(e), 500)

    return app


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Starting AutoZoom API server on %s:%s", settings.host, settings.port)
    create_app(settings).run(host=settings.host, port=settings.port, threaded=True)


if __name__ == '__main__':
    main()
