"""Vehicle inspection queue with a public call panel (MQTT-based).

Project v0 uses MQTT pub/sub (via a broker like Mosquitto) to coordinate:
- a Queue Store service (the only owner of vehicle state)
- a Reception workstation that registers vehicles
- a Technician workstation that calls and releases vehicles
- a Public Display that cycles its views and announces calls by voice

Run everything locally with `python -m inspection_queue.app run`.
"""
