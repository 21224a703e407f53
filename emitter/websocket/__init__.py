"""Stream transport over websocket connections."""