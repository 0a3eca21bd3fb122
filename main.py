import argparse
import base64
import binascii
import logging
import time
from pathlib import Path

from flask import Flask, jsonify, request
from flask_cors import CORS

from audiomatch.audio_utils import decode_wav
from audiomatch.config import DatabaseConfig
from audiomatch.errors import InvalidAudio, NoFingerprint
from audiomatch.logging_config import set_level, setup_logger
from audiomatch.recognizer import SongRecognizer, index_directory

logger = setup_logger(__name__)

app = Flask(__name__)
CORS(app)

app.config["MAX_CONTENT_LENGTH"] = 50 * 1024 * 1024
app.config["DATABASE_PATH"] = DatabaseConfig.DB_FILE

recognizer = None


def load_recognizer(db_path=None):
    global recognizer
    db_path = db_path or app.config["DATABASE_PATH"]
    recognizer = SongRecognizer.from_catalog(db_path)
    app.config["DATABASE_PATH"] = str(db_path)
    logger.info(f"✓ Catalog loaded: {len(recognizer.index)} songs")
    return recognizer


def read_upload():
    """Decode the uploaded 'audio' WAV field. Returns (samples, sr, channels)."""
    if "audio" not in request.files:
        return None
    return decode_wav(request.files["audio"].read())


def read_recording():
    """Decode a base64 WAV (optionally a data: URL) from the JSON body."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    audio_data = data.get("audio_data")
    if not audio_data:
        return None
    if not isinstance(audio_data, str):
        raise InvalidAudio("audio_data must be a base64 string")

    if "," in audio_data:
        audio_data = audio_data.split(",", 1)[1]
    try:
        audio_bytes = base64.b64decode(audio_data, validate=True)
    except binascii.Error as e:
        raise InvalidAudio(f"Recording is not valid base64: {e}") from e
    return decode_wav(audio_bytes)


@app.errorhandler(InvalidAudio)
def handle_invalid_audio(e):
    logger.warning(f"Rejected audio: {e}")
    return jsonify({"success": False, "message": str(e)}), 400


@app.errorhandler(NoFingerprint)
def handle_no_fingerprint(e):
    logger.warning(f"Rejected song: {e}")
    return jsonify({"success": False, "message": str(e)}), 422


@app.route("/")
def health_check():
    return "Audio matching service is running"


@app.route("/api/status")
def api_status():
    if recognizer is None:
        return jsonify({"status": "error", "message": "Database not loaded"}), 500
    stats = recognizer.get_stats()
    return jsonify(
        {
            "status": "ok",
            "database": {
                "num_songs": stats["num_songs"],
                "unique_hashes": stats["unique_hashes"],
                "songs": [
                    {"id": s["song_id"], "title": s["title"], "artist": s["artist"]}
                    for s in recognizer.get_all_songs()
                ],
            },
        }
    )


@app.route("/api/match", methods=["POST"])
def api_match():
    if recognizer is None:
        return jsonify({"success": False, "message": "Database not loaded"}), 500

    upload = read_upload()
    if upload is None:
        return jsonify({"success": False, "message": "No audio file"}), 400
    return match_response(upload)


@app.route("/api/record", methods=["POST"])
def api_record():
    if recognizer is None:
        return jsonify({"success": False, "message": "Database not loaded"}), 500

    recording = read_recording()
    if recording is None:
        return jsonify({"success": False, "message": "No audio_data"}), 400
    return match_response(recording)


def match_response(upload):
    start_time = time.time()
    samples, sr, channels = upload
    result = recognizer.identify(samples, sr, channels=channels)
    elapsed = time.time() - start_time

    song_info = recognizer.get_song_info(result.song_id) if result.matched else None
    return jsonify(
        {
            "matched": result.matched,
            "song_id": result.song_id,
            "title": song_info["title"] if song_info else None,
            "artist": song_info["artist"] if song_info else None,
            "confidence": round(result.confidence, 4),
            "aligned_hashes": result.aligned_count,
            "query_hashes": result.query_hash_count,
            "query_time": round(elapsed * 1000, 1),
        }
    )


@app.route("/api/add-song", methods=["POST"])
def api_add_song():
    if recognizer is None:
        return jsonify({"success": False, "message": "Database not loaded"}), 500

    title = request.form.get("title")
    artist = request.form.get("artist")
    if not title or not artist:
        return jsonify({"success": False, "message": "title and artist are required"}), 400

    upload = read_upload()
    if upload is None:
        return jsonify({"success": False, "message": "No audio file"}), 400

    samples, sr, channels = upload
    song_id = recognizer.register(samples, sr, title, artist, channels=channels)
    song_info = recognizer.get_song_info(song_id)

    return jsonify(
        {
            "success": True,
            "song_id": song_id,
            "title": title,
            "artist": artist,
            "num_hashes": song_info["num_hashes"],
        }
    )


@app.route("/api/songs/<int:song_id>", methods=["DELETE"])
def api_delete_song(song_id):
    if recognizer is None:
        return jsonify({"success": False, "message": "Database not loaded"}), 500

    if not recognizer.remove(song_id):
        return jsonify({"success": False, "message": "Song not found"}), 404
    return jsonify({"success": True, "song_id": song_id})


def identify_audio_file(filepath, plot_path=None, constellation_path=None):
    if constellation_path:
        save_constellation(filepath, constellation_path)

    result = recognizer.identify_file(filepath)

    if result.matched:
        info = recognizer.get_song_info(result.song_id)
        logger.info(
            f"✓ BEST MATCH: {info['title']} - {info['artist']} "
            f"(confidence {result.confidence:.2f}, offset {result.offset} frames)"
        )
    else:
        logger.info(f"✗ NO MATCH FOUND (best confidence {result.confidence:.2f})")

    if plot_path and result.time_pairs:
        from audiomatch.visualize import visualize_match

        visualize_match(result, save_path=plot_path)

    return result


def save_constellation(filepath, save_path):
    """Plot the peaks the recognizer extracts from filepath."""
    from audiomatch.audio_utils import load_audio
    from audiomatch.fingerprint import create_constellation_map
    from audiomatch.visualize import visualize_constellation_map

    spectral_params = {
        k: v for k, v in recognizer.params.items() if k not in ("fan_out", "pairing_window")
    }
    samples, sr = load_audio(filepath)
    peaks, spec = create_constellation_map(samples, sr, **spectral_params)
    visualize_constellation_map(spec, peaks, save_path=save_path, title=Path(filepath).name)
    return len(peaks)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Audio fingerprint matching service")
    parser.add_argument("--db", default=app.config["DATABASE_PATH"], help="Catalog database path")
    parser.add_argument("--index", metavar="DIR", help="Register every audio file in DIR and exit")
    parser.add_argument("--pattern", default="*.wav", help="Glob used with --index")
    parser.add_argument("--identify", metavar="FILE", help="Identify one audio file and exit")
    parser.add_argument("--plot", metavar="PNG", help="Save the offset plot for --identify")
    parser.add_argument(
        "--constellation", metavar="PNG", help="Save the peak constellation for --identify"
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        set_level(logging.DEBUG)
        set_level(logging.DEBUG, prefix=__name__)

    Path(args.db).parent.mkdir(parents=True, exist_ok=True)
    load_recognizer(args.db)

    if args.index:
        index_directory(recognizer, args.index, pattern=args.pattern)
        return 0

    if args.identify:
        result = identify_audio_file(
            args.identify, plot_path=args.plot, constellation_path=args.constellation
        )
        return 0 if result.matched else 1

    logger.info(f"🌐 Starting web server at http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
