import pyaudio


def main():
    pa = pyaudio.PyAudio()
    count = pa.get_device_count()
    default_index = None
    try:
        default_index = int(pa.get_default_output_device_info()["index"])
    except OSError:
        pass
    print("Output devices (set OUTPUT_DEVICE_INDEX):")
    for i in range(count):
        info = pa.get_device_info_by_index(i)
        if info.get("maxOutputChannels", 0) > 0:
            marker = "*" if i == default_index else " "
            print(
                f"{marker}[{i}] {info.get('name')} "
                f"rate={int(info.get('defaultSampleRate', 0))} "
                f"channels={int(info.get('maxOutputChannels', 0))}"
            )
    pa.terminate()


if __name__ == "__main__":
    main()
